"""Dual-tier vector repository."""

from __future__ import annotations

import asyncio
import logging

from ..models import VectorSearchResult
from ..protocols import VectorStore
from ..similarity import validate_vector
from .message_repository import write_both_tiers

logger = logging.getLogger(__name__)


class VectorRepository:
    """Vector store composed of a cached and a persistent tier.

    Writes go to both tiers concurrently. Searches query both tiers
    concurrently and merge by message ID; where both tiers return the same
    message the cached result wins.

    Example:
        >>> repo = VectorRepository(cached_vectors, persistent_vectors)
        >>> await repo.store_vector(embedding, "msg-1")
        >>> nearest = await repo.search_similar(query_embedding, limit=5)
    """

    def __init__(self, cached_store: VectorStore, persistent_store: VectorStore) -> None:
        """Initialize the repository.

        Args:
            cached_store: Session-scoped in-memory vectors
            persistent_store: Durable vectors for the whole session
        """
        self._cached = cached_store
        self._persistent = persistent_store

    @property
    def cached_store(self) -> VectorStore:
        return self._cached

    @property
    def persistent_store(self) -> VectorStore:
        return self._persistent

    async def store_vector(self, vector: list[float], message_id: str) -> None:
        """Store the embedding for a message in both tiers.

        Raises:
            ValidationError: If the vector is empty or not finite; neither
                             tier is written
            TierWriteError: If either tier's write failed
        """
        values = validate_vector(vector)
        await write_both_tiers(
            self._cached.store_vector(list(values), message_id),
            self._persistent.store_vector(list(values), message_id),
        )

    async def search_similar(
        self, vector: list[float], limit: int = 10
    ) -> list[VectorSearchResult]:
        """Search both tiers and merge the results.

        Args:
            vector: Query embedding
            limit: Maximum number of results

        Returns:
            Results sorted by descending similarity, ties by message ID
        """
        cached_results, persistent_results = await asyncio.gather(
            self._cached.search_similar(list(vector), limit),
            self._persistent.search_similar(list(vector), limit),
        )

        merged: dict[str, VectorSearchResult] = {}
        for result in persistent_results:
            merged[result.message_id] = result
        # Cached entries are fresher and take precedence
        for result in cached_results:
            merged[result.message_id] = result

        logger.debug(
            f"Merged {len(cached_results)} cached and {len(persistent_results)} "
            f"persistent results into {len(merged)}"
        )

        results = sorted(merged.values(), key=lambda r: (-r.similarity, r.message_id))
        return results[: max(limit, 0)]

    async def close(self) -> None:
        """Close both tiers."""
        await asyncio.gather(self._cached.close(), self._persistent.close())
