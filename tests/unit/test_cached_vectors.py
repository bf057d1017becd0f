"""Tests for the in-memory vector tier."""

from __future__ import annotations

import pytest

from convstore.errors import ValidationError
from convstore.session import SessionService
from convstore.stores.cached_vectors import CachedVectorStore


@pytest.fixture
async def vectors(session_service: SessionService) -> CachedVectorStore:
    """Vector cache bound to a real session service."""
    store = CachedVectorStore(session_service, max_entries=1000)
    yield store
    await store.close()


class TestStoreVector:
    """Tests for storing vectors."""

    @pytest.mark.asyncio
    async def test_store_and_get(self, vectors: CachedVectorStore) -> None:
        """Test a stored vector can be read back."""
        await vectors.store_vector([0.1, 0.2, 0.3], "m1")

        assert await vectors.get_vector("m1") == [0.1, 0.2, 0.3]
        assert await vectors.get_vector("missing") is None

    @pytest.mark.asyncio
    async def test_empty_vector_rejected(self, vectors: CachedVectorStore) -> None:
        """Test an empty vector is rejected and nothing is stored."""
        with pytest.raises(ValidationError, match="Vector cannot be empty"):
            await vectors.store_vector([], "m1")

        assert vectors.vector_count == 0

    @pytest.mark.asyncio
    async def test_replace_keeps_one_entry(self, vectors: CachedVectorStore) -> None:
        """Test re-storing a message's vector replaces it."""
        await vectors.store_vector([1.0, 0.0], "m1")
        await vectors.store_vector([0.0, 1.0], "m1")

        assert vectors.vector_count == 1
        assert await vectors.get_vector("m1") == [0.0, 1.0]

    @pytest.mark.asyncio
    async def test_input_is_copied(self, vectors: CachedVectorStore) -> None:
        """Test mutating the caller's list does not change the stored vector."""
        vector = [1.0, 0.0]
        await vectors.store_vector(vector, "m1")
        vector[0] = 99.0

        assert await vectors.get_vector("m1") == [1.0, 0.0]

    @pytest.mark.asyncio
    async def test_eviction_oldest_first(self, session_service: SessionService) -> None:
        """Test the least recently written vector is evicted."""
        store = CachedVectorStore(session_service, max_entries=2)
        await store.store_vector([1.0], "m1")
        await store.store_vector([1.0], "m2")
        # Re-writing m1 makes it the newest entry
        await store.store_vector([1.0], "m1")
        await store.store_vector([1.0], "m3")

        assert await store.get_vector("m2") is None
        assert await store.get_vector("m1") is not None
        assert await store.get_vector("m3") is not None
        await store.close()


class TestSearchSimilar:
    """Tests for similarity search."""

    @pytest.mark.asyncio
    async def test_ranked_results(self, vectors: CachedVectorStore) -> None:
        """Test results are ranked by descending similarity."""
        await vectors.store_vector([1.0, 0.0, 0.0], "m1")
        await vectors.store_vector([0.0, 1.0, 0.0], "m2")

        results = await vectors.search_similar([1.0, 0.0, 0.0], limit=2)

        assert [r.message_id for r in results] == ["m1", "m2"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].similarity == pytest.approx(0.0)
        assert results[0].id == "m1"

    @pytest.mark.asyncio
    async def test_negative_similarity_dropped(self, vectors: CachedVectorStore) -> None:
        """Test vectors pointing away from the query are excluded."""
        await vectors.store_vector([1.0, 0.0], "m1")
        await vectors.store_vector([-1.0, 0.0], "m2")

        results = await vectors.search_similar([1.0, 0.0])

        assert [r.message_id for r in results] == ["m1"]

    @pytest.mark.asyncio
    async def test_limit(self, vectors: CachedVectorStore) -> None:
        """Test the limit caps the result count."""
        for i in range(5):
            await vectors.store_vector([1.0, float(i)], f"m{i}")

        assert len(await vectors.search_similar([1.0, 0.0], limit=3)) == 3
        assert await vectors.search_similar([1.0, 0.0], limit=0) == []

    @pytest.mark.asyncio
    async def test_ties_ordered_by_message_id(self, vectors: CachedVectorStore) -> None:
        """Test equal similarities are ordered by message ID."""
        await vectors.store_vector([1.0, 0.0], "b")
        await vectors.store_vector([2.0, 0.0], "a")

        results = await vectors.search_similar([1.0, 0.0])

        assert [r.message_id for r in results] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_scores_zero(self, vectors: CachedVectorStore) -> None:
        """Test stored vectors of another dimension rank with similarity 0."""
        await vectors.store_vector([1.0, 0.0, 0.0], "m1")

        results = await vectors.search_similar([1.0, 0.0])

        assert results[0].similarity == 0.0

    @pytest.mark.asyncio
    async def test_results_are_copies(self, vectors: CachedVectorStore) -> None:
        """Test mutating a result vector does not change the cache."""
        await vectors.store_vector([1.0, 0.0], "m1")

        results = await vectors.search_similar([1.0, 0.0])
        results[0].vector[0] = 42.0

        assert await vectors.get_vector("m1") == [1.0, 0.0]


class TestSessionScoping:
    """Tests for session invalidation."""

    @pytest.mark.asyncio
    async def test_switch_clears(
        self, vectors: CachedVectorStore, session_service: SessionService
    ) -> None:
        """Test a session switch drops all cached vectors."""
        await vectors.store_vector([1.0, 0.0], "m1")

        await session_service.start_new_session()

        assert vectors.vector_count == 0
        assert await vectors.search_similar([1.0, 0.0]) == []

    @pytest.mark.asyncio
    async def test_detached_cache_clears_on_session_change(
        self, vectors: CachedVectorStore, session_service: SessionService
    ) -> None:
        """Test a detached vector cache drops vectors from an earlier session."""
        vectors.detach()
        await vectors.store_vector([1.0, 0.0], "m1")

        await session_service.start_new_session()

        assert await vectors.get_vector("m1") is None
        assert vectors.vector_count == 0
