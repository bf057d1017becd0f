"""Conversation storage - dual-tier, session-scoped message and vector stores.

Every message and embedding is written to two tiers:

1. **Cached tier:** bounded in-memory stores scoped to the active session
2. **Persistent tier:** the active session's SQLite database

Reads are answered from the cache when it can answer completely and fall
back to the database otherwise. A session switch clears the caches and
points the database tiers at the new session's file.

Classes:
    StoresFactory: Builds and memoizes the repositories
    SessionService: Creates, loads and switches sessions
    MessageRepository: Dual-tier message storage
    VectorRepository: Dual-tier embedding storage
    NaturalMessageRepository: Semantic search over stored messages

Example:
    >>> from convstore import ConvStoreConfig, create_stores
    >>>
    >>> config = ConvStoreConfig.load()
    >>> factory = create_stores(config)
    >>> store = factory.create_natural_message_store()
    >>>
    >>> await store.store_message(message)
    >>> recent = await store.get_message_history(limit=20)
    >>> similar = await store.search_similar("deployment plans")
    >>>
    >>> await factory.close()
"""

from __future__ import annotations

from convstore.config import CacheConfig, ConvStoreConfig, EmbeddingConfig
from convstore.embedder import DisabledEmbedder, OllamaEmbedder
from convstore.errors import (
    ConvStoreError,
    EmbeddingError,
    SearchError,
    SessionNotFoundError,
    TierWriteError,
    ValidationError,
    VectorStorageError,
)
from convstore.factory import StoresFactory, create_stores
from convstore.models import (
    Message,
    MessageType,
    SessionChangeEvent,
    SessionChangeType,
    SessionInfo,
    VectorEntry,
    VectorSearchResult,
)
from convstore.session import SessionService
from convstore.stores import (
    CachedMessageStore,
    CachedVectorStore,
    MessageRepository,
    NaturalMessageRepository,
    SQLiteMessageStore,
    SQLiteVectorStore,
    VectorRepository,
)

__all__ = [
    # Configuration
    "CacheConfig",
    "ConvStoreConfig",
    "EmbeddingConfig",
    # Entities
    "Message",
    "MessageType",
    "SessionChangeEvent",
    "SessionChangeType",
    "SessionInfo",
    "VectorEntry",
    "VectorSearchResult",
    # Services
    "SessionService",
    "OllamaEmbedder",
    "DisabledEmbedder",
    "StoresFactory",
    "create_stores",
    # Stores
    "CachedMessageStore",
    "CachedVectorStore",
    "MessageRepository",
    "NaturalMessageRepository",
    "SQLiteMessageStore",
    "SQLiteVectorStore",
    "VectorRepository",
    # Errors
    "ConvStoreError",
    "EmbeddingError",
    "SearchError",
    "SessionNotFoundError",
    "TierWriteError",
    "ValidationError",
    "VectorStorageError",
]
