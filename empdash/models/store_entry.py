"""ORM model for one key of the persisted key-value store."""

from sqlalchemy import Column, DateTime, String, Text, func

from empdash.models.base import Base


class StoreEntry(Base):
    """
    One key/value pair of the identity store.

    value holds the raw string written by the caller (usually JSON); it is not
    parsed here so malformed payloads survive until the reader decides what to do.
    """

    __tablename__ = "store_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
