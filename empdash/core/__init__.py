"""Core app configuration, database and key-value store backends."""

from empdash.core.config import get_settings, settings
from empdash.core.kvstore import DatabaseStore, KeyValueStore, MemoryStore

__all__ = ["get_settings", "settings", "DatabaseStore", "KeyValueStore", "MemoryStore"]
