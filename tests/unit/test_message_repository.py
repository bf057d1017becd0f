"""Tests for the dual-tier message repository."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from convstore.errors import TierWriteError
from convstore.models import Message, MessageType
from convstore.session import SessionService
from convstore.stores.cached_messages import CachedMessageStore
from convstore.stores.message_repository import MessageRepository, write_both_tiers
from convstore.stores.sqlite_messages import SQLiteMessageStore


def _mock_store() -> AsyncMock:
    store = AsyncMock()
    store.get_message_history.return_value = []
    store.get_messages_by_type.return_value = []
    store.search_by_regex.return_value = []
    store.get_message_by_id.return_value = None
    return store


class TestWriteBothTiers:
    """Tests for the concurrent write helper."""

    @pytest.mark.asyncio
    async def test_both_succeed(self) -> None:
        """Test no error when both writes succeed."""
        await write_both_tiers(asyncio.sleep(0), asyncio.sleep(0))

    @pytest.mark.asyncio
    async def test_persistent_failure_after_cache_success(self) -> None:
        """Test the cached write still completes when the persistent one fails."""
        done: list[str] = []

        async def cached() -> None:
            await asyncio.sleep(0)
            done.append("cached")

        async def persistent() -> None:
            raise OSError("disk full")

        with pytest.raises(TierWriteError) as exc_info:
            await write_both_tiers(cached(), persistent())

        assert done == ["cached"]
        assert exc_info.value.tier == "persistent"
        assert isinstance(exc_info.value.errors[0], OSError)

    @pytest.mark.asyncio
    async def test_both_fail(self) -> None:
        """Test both failures are reported together."""

        async def fail() -> None:
            raise ValueError("bad")

        with pytest.raises(TierWriteError, match="Write to both tier failed") as exc_info:
            await write_both_tiers(fail(), fail())

        assert len(exc_info.value.errors) == 2


class TestWrites:
    """Tests for repository writes."""

    @pytest.mark.asyncio
    async def test_store_message_writes_both(self, make_message: Callable[..., Message]) -> None:
        """Test each tier receives its own copy."""
        cached, persistent = _mock_store(), _mock_store()
        repo = MessageRepository(cached, persistent)
        message = make_message("m1")

        await repo.store_message(message)

        cached_arg = cached.store_message.await_args.args[0]
        persistent_arg = persistent.store_message.await_args.args[0]
        assert cached_arg == message and persistent_arg == message
        assert cached_arg is not message and cached_arg is not persistent_arg

    @pytest.mark.asyncio
    async def test_store_messages_cache_failure(
        self, make_message: Callable[..., Message]
    ) -> None:
        """Test a cached tier failure surfaces after the persistent write."""
        cached, persistent = _mock_store(), _mock_store()
        cached.store_messages.side_effect = RuntimeError("cache broken")
        repo = MessageRepository(cached, persistent)

        with pytest.raises(TierWriteError) as exc_info:
            await repo.store_messages([make_message("m1"), make_message("m2")])

        assert exc_info.value.tier == "cached"
        persistent.store_messages.assert_awaited_once()


class TestHistoryReads:
    """Tests for cache-first history reads."""

    @pytest.mark.asyncio
    async def test_unlimited_goes_to_persistent(self) -> None:
        """Test a read without a limit skips the cache."""
        cached, persistent = _mock_store(), _mock_store()
        repo = MessageRepository(cached, persistent)

        await repo.get_message_history()

        cached.get_message_history.assert_not_awaited()
        persistent.get_message_history.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_full_cache_answers(self, make_message: Callable[..., Message]) -> None:
        """Test a cache holding enough messages is not escalated."""
        cached, persistent = _mock_store(), _mock_store()
        cached.get_message_history.return_value = [make_message(f"m{i}") for i in range(3)]
        repo = MessageRepository(cached, persistent)

        result = await repo.get_message_history(limit=3)

        assert len(result) == 3
        persistent.get_message_history.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_short_cache_escalates(self, make_message: Callable[..., Message]) -> None:
        """Test a short cache answer falls back to the persistent tier."""
        cached, persistent = _mock_store(), _mock_store()
        cached.get_message_history.return_value = [make_message("m9")]
        persistent.get_message_history.return_value = [make_message(f"m{i}") for i in range(5)]
        repo = MessageRepository(cached, persistent)

        result = await repo.get_message_history(limit=5)

        assert len(result) == 5
        persistent.get_message_history.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_summary_stops_escalation(
        self, session_service: SessionService, make_message: Callable[..., Message]
    ) -> None:
        """Test a cache ending at a summary answers even when short."""
        cached = CachedMessageStore(session_service, max_entries=100)
        persistent = _mock_store()
        persistent.get_message_history.return_value = [make_message(f"old{i}") for i in range(10)]
        repo = MessageRepository(cached, persistent)

        await cached.store_messages(
            [
                make_message("m0", offset=0),
                make_message("m1", offset=1),
                make_message("sum", type=MessageType.SUMMARY, offset=2),
            ]
        )

        result = await repo.get_message_history(limit=5)

        assert [m.id for m in result] == ["m0", "m1", "sum"]
        persistent.get_message_history.assert_not_awaited()
        await cached.close()

    @pytest.mark.asyncio
    async def test_summary_last_of_five(
        self, session_service: SessionService, make_message: Callable[..., Message]
    ) -> None:
        """Test five cached entries ending at a summary satisfy limit=5."""
        cached = CachedMessageStore(session_service, max_entries=100)
        persistent = _mock_store()
        repo = MessageRepository(cached, persistent)

        messages = [make_message(f"m{i}", offset=i) for i in range(4)]
        messages.append(make_message("sum", type=MessageType.SUMMARY, offset=4))
        await cached.store_messages(messages)

        result = await repo.get_message_history(limit=5)

        assert [m.id for m in result] == ["m0", "m1", "m2", "m3", "sum"]
        persistent.get_message_history.assert_not_awaited()
        await cached.close()


class TestFilteredReads:
    """Tests for type, regex and ID reads."""

    @pytest.mark.asyncio
    async def test_by_type_fallback(self, make_message: Callable[..., Message]) -> None:
        """Test a short cached type read escalates with the same limit."""
        cached, persistent = _mock_store(), _mock_store()
        repo = MessageRepository(cached, persistent)

        await repo.get_messages_by_type(MessageType.ERROR, limit=2)

        cached.get_messages_by_type.assert_awaited_once_with(MessageType.ERROR, 2)
        persistent.get_messages_by_type.assert_awaited_once_with(MessageType.ERROR, 2)

    @pytest.mark.asyncio
    async def test_by_type_unlimited(self) -> None:
        """Test an unlimited type read skips the cache."""
        cached, persistent = _mock_store(), _mock_store()
        repo = MessageRepository(cached, persistent)

        await repo.get_messages_by_type(MessageType.USER)

        cached.get_messages_by_type.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_regex_cache_hit(self, make_message: Callable[..., Message]) -> None:
        """Test a full cached regex answer is returned directly."""
        cached, persistent = _mock_store(), _mock_store()
        cached.search_by_regex.return_value = [make_message("m1")]
        repo = MessageRepository(cached, persistent)

        result = await repo.search_by_regex("deploy", limit=1, type=MessageType.USER)

        assert [m.id for m in result] == ["m1"]
        cached.search_by_regex.assert_awaited_once_with("deploy", 1, MessageType.USER)
        persistent.search_by_regex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_regex_unlimited(self) -> None:
        """Test an unlimited regex search goes to the persistent tier."""
        cached, persistent = _mock_store(), _mock_store()
        repo = MessageRepository(cached, persistent)

        await repo.search_by_regex("deploy")

        persistent.search_by_regex.assert_awaited_once_with("deploy", None, None)

    @pytest.mark.asyncio
    async def test_get_by_id_cache_first(self, make_message: Callable[..., Message]) -> None:
        """Test a cache hit does not touch the persistent tier."""
        cached, persistent = _mock_store(), _mock_store()
        cached.get_message_by_id.return_value = make_message("m1")
        repo = MessageRepository(cached, persistent)

        assert await repo.get_message_by_id("m1") is not None
        persistent.get_message_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_by_id_fallback(self, make_message: Callable[..., Message]) -> None:
        """Test an evicted message is found in the persistent tier."""
        cached, persistent = _mock_store(), _mock_store()
        persistent.get_message_by_id.return_value = make_message("m1")
        repo = MessageRepository(cached, persistent)

        found = await repo.get_message_by_id("m1")

        assert found is not None and found.id == "m1"

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        """Test closing closes both tiers."""
        cached, persistent = _mock_store(), _mock_store()
        repo = MessageRepository(cached, persistent)

        await repo.close()

        cached.close.assert_awaited_once()
        persistent.close.assert_awaited_once()


class TestLimits:
    """Tests for limit handling across both tiers."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [None, 0, -1])
    async def test_non_positive_limit_skips_cache(self, limit: int | None) -> None:
        """Test None, zero and negative limits all read the full persistent tier."""
        cached, persistent = _mock_store(), _mock_store()
        repo = MessageRepository(cached, persistent)

        await repo.get_message_history(limit)
        await repo.get_messages_by_type(MessageType.USER, limit)
        await repo.search_by_regex("x", limit)

        cached.get_message_history.assert_not_awaited()
        cached.get_messages_by_type.assert_not_awaited()
        cached.search_by_regex.assert_not_awaited()
        persistent.get_message_history.assert_awaited_once_with()
        persistent.search_by_regex.assert_awaited_once_with("x", None, None)

    @pytest.mark.asyncio
    async def test_negative_limit_tiers_agree(
        self, session_service: SessionService, make_message: Callable[..., Message]
    ) -> None:
        """Test a negative limit returns every message from both real tiers."""
        cached = CachedMessageStore(session_service)
        persistent = SQLiteMessageStore(session_service)
        repo = MessageRepository(cached, persistent)
        await repo.store_messages([make_message(f"m{i}", offset=i) for i in range(3)])

        expected = ["m0", "m1", "m2"]
        assert [m.id for m in await cached.get_message_history(-1)] == expected
        assert [m.id for m in await persistent.get_message_history(-1)] == expected
        assert [m.id for m in await repo.get_message_history(-1)] == expected
        await repo.close()

    @pytest.mark.asyncio
    async def test_tiers_return_equal_messages(self, session_service: SessionService) -> None:
        """Test a message with sub-millisecond time reads back equal from both tiers."""
        cached = CachedMessageStore(session_service)
        persistent = SQLiteMessageStore(session_service)
        repo = MessageRepository(cached, persistent)
        message = Message(
            id="m1",
            type=MessageType.USER,
            content="hi",
            sender="user",
            timestamp=datetime(2024, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc),
        )
        await repo.store_message(message)

        assert await cached.get_message_by_id("m1") == await persistent.get_message_by_id("m1")
        await repo.close()
