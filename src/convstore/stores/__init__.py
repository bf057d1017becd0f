"""Storage tiers and the repositories that combine them.

1. **Cached tier:** bounded, session-scoped, in-memory
   (``CachedMessageStore``, ``CachedVectorStore``)
2. **Persistent tier:** the session's SQLite database, unbounded
   (``SQLiteMessageStore``, ``SQLiteVectorStore``)

``MessageRepository`` and ``VectorRepository`` write through to both tiers
and read cache-first; ``NaturalMessageRepository`` adds semantic search.
"""

from __future__ import annotations

from convstore.stores.cached_messages import CachedMessageStore
from convstore.stores.cached_vectors import CachedVectorStore
from convstore.stores.message_repository import MessageRepository
from convstore.stores.natural_repository import NaturalMessageRepository
from convstore.stores.sqlite_messages import SQLiteMessageStore
from convstore.stores.sqlite_vectors import SQLiteVectorStore
from convstore.stores.vector_repository import VectorRepository

__all__ = [
    "CachedMessageStore",
    "CachedVectorStore",
    "MessageRepository",
    "NaturalMessageRepository",
    "SQLiteMessageStore",
    "SQLiteVectorStore",
    "VectorRepository",
]
