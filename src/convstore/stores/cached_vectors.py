"""In-memory vector tier.

Bounded, session-scoped storage for message embeddings with a linear-scan
cosine similarity search. The bound is small enough that no index is kept.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict

from ..models import VectorEntry, VectorSearchResult
from ..protocols import SessionProvider
from ..similarity import cosine_similarity, validate_vector
from .session_cache import SessionScopedCache

logger = logging.getLogger(__name__)


class CachedVectorStore(SessionScopedCache):
    """Session-scoped, bounded in-memory vector store.

    Entries are keyed by message ID and ordered by when they were last
    written; re-storing a vector for a message replaces the old one and
    makes it the newest entry. Vectors are copied on the way in and out.

    Example:
        >>> cache = CachedVectorStore(session_service, max_entries=1000)
        >>> await cache.store_vector([0.1, 0.2, 0.3], "msg-1")
        >>> results = await cache.search_similar([0.1, 0.2, 0.3], limit=5)
    """

    def __init__(self, session_provider: SessionProvider, max_entries: int = 1000) -> None:
        """Initialize the cache.

        Args:
            session_provider: Provider of the active session and its change events
            max_entries: Maximum number of vectors retained. When exceeded,
                         the least recently written vectors are removed.
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        super().__init__(session_provider)
        self._max_entries = max_entries
        self._entries: OrderedDict[str, VectorEntry] = OrderedDict()

    @property
    def max_entries(self) -> int:
        """Configured maximum number of vectors."""
        return self._max_entries

    @property
    def vector_count(self) -> int:
        """Current number of cached vectors."""
        return len(self._entries)

    async def store_vector(self, vector: list[float], message_id: str) -> None:
        """Store the embedding for a message, replacing any previous one.

        Raises:
            ValidationError: If the vector is empty or not finite. Nothing is
                             stored in that case.
        """
        values = validate_vector(vector)
        await self._ensure_session_bound()

        self._entries.pop(message_id, None)
        self._entries[message_id] = VectorEntry(
            message_id=message_id,
            vector=values,
            stored_at=time.time(),
        )

        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cached vector for message {evicted}")

    async def search_similar(
        self, vector: list[float], limit: int = 10
    ) -> list[VectorSearchResult]:
        """Rank cached vectors by cosine similarity to ``vector``.

        Negative similarities are dropped. Ties are broken by message ID so
        the order is stable across runs.

        Args:
            vector: Query embedding
            limit: Maximum number of results

        Returns:
            Results sorted by descending similarity
        """
        await self._ensure_session_bound()

        results: list[VectorSearchResult] = []
        for entry in self._entries.values():
            similarity = cosine_similarity(vector, entry.vector)
            if similarity < 0:
                continue
            results.append(
                VectorSearchResult(
                    id=entry.id,
                    message_id=entry.message_id,
                    vector=list(entry.vector),
                    similarity=similarity,
                )
            )

        results.sort(key=lambda r: (-r.similarity, r.message_id))
        return results[: max(limit, 0)]

    async def get_vector(self, message_id: str) -> list[float] | None:
        """Get a copy of the cached vector for a message, or None."""
        await self._ensure_session_bound()
        entry = self._entries.get(message_id)
        return list(entry.vector) if entry is not None else None

    def _clear(self) -> None:
        self._entries = OrderedDict()
