"""Factory for building the storage tiers with their dependencies.

Each store is built once per factory and reused until ``reset()``. This
keeps construction explicit and testable without process-wide singletons.
"""

from __future__ import annotations

import logging

from .config import ConvStoreConfig
from .embedder import DisabledEmbedder, OllamaEmbedder
from .protocols import Embedder, SessionProvider
from .session import SessionService
from .stores.session_cache import SessionScopedCache
from .stores.sqlite_base import SessionDatabase
from .stores import (
    CachedMessageStore,
    CachedVectorStore,
    MessageRepository,
    NaturalMessageRepository,
    SQLiteMessageStore,
    SQLiteVectorStore,
    VectorRepository,
)

logger = logging.getLogger(__name__)


class StoresFactory:
    """Builds and memoizes the message, vector and natural-language stores.

    Example:
        >>> factory = StoresFactory(session_service, embedder)
        >>> store = factory.create_natural_message_store()
        >>> assert store is factory.create_natural_message_store()
        >>> await factory.close()
    """

    def __init__(
        self,
        session_provider: SessionProvider,
        embedder: Embedder,
        message_cache_size: int = 100,
        vector_cache_size: int = 1000,
    ) -> None:
        """Initialize the factory.

        Args:
            session_provider: Shared by every tier for session binding
            embedder: Embedding provider for the natural-language store
            message_cache_size: Bound of the cached message tier
            vector_cache_size: Bound of the cached vector tier
        """
        self._session_provider = session_provider
        self._embedder = embedder
        self._message_cache_size = message_cache_size
        self._vector_cache_size = vector_cache_size

        self._tiers: list[SessionScopedCache | SessionDatabase] = []
        self._message_store: MessageRepository | None = None
        self._vector_store: VectorRepository | None = None
        self._natural_store: NaturalMessageRepository | None = None

    @property
    def session_provider(self) -> SessionProvider:
        return self._session_provider

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    def create_message_store(self) -> MessageRepository:
        """Get the dual-tier message repository, building it on first use."""
        if self._message_store is None:
            cached = CachedMessageStore(self._session_provider, self._message_cache_size)
            persistent = SQLiteMessageStore(self._session_provider)
            self._tiers.extend((cached, persistent))
            self._message_store = MessageRepository(cached, persistent)
            logger.debug(f"Created message repository (cache size {self._message_cache_size})")
        return self._message_store

    def create_vector_store(self) -> VectorRepository:
        """Get the dual-tier vector repository, building it on first use."""
        if self._vector_store is None:
            cached = CachedVectorStore(self._session_provider, self._vector_cache_size)
            persistent = SQLiteVectorStore(self._session_provider)
            self._tiers.extend((cached, persistent))
            self._vector_store = VectorRepository(cached, persistent)
            logger.debug(f"Created vector repository (cache size {self._vector_cache_size})")
        return self._vector_store

    def create_natural_message_store(self) -> NaturalMessageRepository:
        """Get the natural-language repository over the other two stores."""
        if self._natural_store is None:
            self._natural_store = NaturalMessageRepository(
                self._embedder,
                self.create_vector_store(),
                self.create_message_store(),
            )
            logger.debug("Created natural message repository")
        return self._natural_store

    def reset(self) -> None:
        """Forget every built store.

        Every tier built so far stops listening for session changes and the
        caches are emptied. Stores a caller still holds keep working: they
        check the active session on each call. Use ``close()`` to also
        release database connections.
        """
        for tier in self._tiers:
            tier.detach()
        self._tiers = []
        self._message_store = None
        self._vector_store = None
        self._natural_store = None

    async def close(self) -> None:
        """Close every built store and the embedder, then reset."""
        for tier in self._tiers:
            await tier.close()
        self.reset()

        close_embedder = getattr(self._embedder, "close", None)
        if close_embedder is not None:
            await close_embedder()


def create_stores(config: ConvStoreConfig) -> StoresFactory:
    """
    Create a StoresFactory with all dependencies built from configuration.

    Args:
        config: Storage configuration.

    Returns:
        StoresFactory using a SessionService under ``config.session_dir``.

    Example:
        >>> config = ConvStoreConfig.load()
        >>> factory = create_stores(config)
        >>> store = factory.create_natural_message_store()
    """
    sessions = SessionService(config.session_dir)
    logger.debug(f"Created session service at {config.session_dir}")

    embedder: Embedder
    if config.embedding.enabled:
        embedder = OllamaEmbedder(
            host=config.embedding.host,
            model=config.embedding.model,
            timeout=config.embedding.timeout,
        )
        logger.debug(f"Created embedder: {config.embedding.model} at {config.embedding.host}")
    else:
        embedder = DisabledEmbedder()
        logger.debug("Embedding disabled; semantic search will return no results")

    factory = StoresFactory(
        session_provider=sessions,
        embedder=embedder,
        message_cache_size=config.cache.message_max_entries,
        vector_cache_size=config.cache.vector_max_entries,
    )
    logger.info("Created stores factory")
    return factory
