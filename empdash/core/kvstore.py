"""String key-value store backends: in-memory for tests, SQLAlchemy for persistence."""

from __future__ import annotations

import abc
import threading
from collections.abc import Callable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from empdash.core.database import check_db_connected
from empdash.models.store_entry import StoreEntry


class KeyValueStore(abc.ABC):
    """
    Minimal string store with localStorage-like semantics.

    Values are opaque strings; callers own their encoding. Missing keys read as None.
    """

    @abc.abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abc.abstractmethod
    def write_many(self, changes: Mapping[str, str | None]) -> None:
        """Apply all changes at once; a None value removes the key."""

    @abc.abstractmethod
    def keys(self) -> list[str]:
        ...

    def set(self, key: str, value: str) -> None:
        self.write_many({key: value})

    def remove(self, key: str) -> None:
        """Delete key; no-op when absent."""
        self.write_many({key: None})

    def ping(self) -> bool:
        """True if the backend is reachable."""
        return True


class MemoryStore(KeyValueStore):
    """Dict-backed store. State lives only as long as the instance."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def write_many(self, changes: Mapping[str, str | None]) -> None:
        with self._lock:
            for key, value in changes.items():
                if value is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = value

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class DatabaseStore(KeyValueStore):
    """
    Store backed by the store_entries table.

    Each call opens its own session. write_many commits all of its changes in
    one transaction, so a multi-key update lands completely or not at all.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self._session_factory() as session:
            entry = session.get(StoreEntry, key)
            return entry.value if entry is not None else None

    def write_many(self, changes: Mapping[str, str | None]) -> None:
        if not changes:
            return
        with self._session_factory() as session:
            try:
                for key, value in changes.items():
                    entry = session.get(StoreEntry, key)
                    if value is None:
                        if entry is not None:
                            session.delete(entry)
                    elif entry is None:
                        session.add(StoreEntry(key=key, value=value))
                    else:
                        entry.value = value
                session.commit()
            except Exception:
                session.rollback()
                raise

    def keys(self) -> list[str]:
        with self._session_factory() as session:
            return list(session.scalars(select(StoreEntry.key).order_by(StoreEntry.key)))

    def ping(self) -> bool:
        with self._session_factory() as session:
            return check_db_connected(session)
