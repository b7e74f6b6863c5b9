"""Persistence backends for sleep sessions and sun times."""

from .base import MATCH_MODES, MatchMode, Store
from .memory import MemoryStore
from .sqlite import SQLiteStore


def create_store(backend: str, db_path: str = "sleep_sun.db") -> Store:
    """Select the backend named in the configuration."""
    if backend == "sqlite":
        return SQLiteStore(db_path)
    if backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = [
    "MATCH_MODES",
    "MatchMode",
    "Store",
    "MemoryStore",
    "SQLiteStore",
    "create_store",
]
