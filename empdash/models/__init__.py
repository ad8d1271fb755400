"""SQLAlchemy ORM models."""

from empdash.models.base import Base
from empdash.models.store_entry import StoreEntry

__all__ = ["Base", "StoreEntry"]
