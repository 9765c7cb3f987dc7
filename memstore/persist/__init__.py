"""
Persistence layer.

Provides:
- MemoryBackend contract (one implementation chosen per store)
- SQLiteBackend (WAL-mode SQLite, soft delete, session generations)
"""

from .backend import MemoryBackend
from .sqlite_store import SQLiteBackend

__all__ = ["MemoryBackend", "SQLiteBackend"]
