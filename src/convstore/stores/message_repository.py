"""Dual-tier message repository.

Combines the session-scoped cache with the persistent store:

- All writes go to both tiers concurrently
- Reads with a limit try the cache first and fall back to the persistent tier
- Unlimited reads go straight to the persistent tier, since the cache is
  bounded and cannot answer them

There is no cross-tier atomicity. If one tier's write fails the other's is
not rolled back, and a reader racing a writer may see the new value in one
tier and the old value in the other.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable

from ..errors import TierWriteError
from ..models import Message, MessageType
from ..protocols import MessageStore

logger = logging.getLogger(__name__)


async def write_both_tiers(cached: Awaitable[None], persistent: Awaitable[None]) -> None:
    """Run a cached and a persistent write concurrently.

    Both writes always run to completion before any failure is reported.

    Raises:
        TierWriteError: If either write failed
    """
    results = await asyncio.gather(cached, persistent, return_exceptions=True)
    failures = {
        tier: result
        for tier, result in zip(("cached", "persistent"), results)
        if isinstance(result, BaseException)
    }
    if not failures:
        return

    for failure in failures.values():
        # Cancellation is not a tier failure
        if isinstance(failure, asyncio.CancelledError):
            raise failure

    tier = "both" if len(failures) == 2 else next(iter(failures))
    logger.warning(f"Write to {tier} tier failed; the other tier is not rolled back")
    raise TierWriteError(tier, list(failures.values()))


class MessageRepository:
    """Message store composed of a cached and a persistent tier.

    Holds references to both tiers; it owns no data itself.

    Example:
        >>> repo = MessageRepository(cached_store, persistent_store)
        >>> await repo.store_message(message)
        >>> recent = await repo.get_message_history(limit=20)
    """

    def __init__(self, cached_store: MessageStore, persistent_store: MessageStore) -> None:
        """Initialize the repository.

        Args:
            cached_store: Fast in-memory store for recent messages
            persistent_store: Durable store for the complete history
        """
        self._cached = cached_store
        self._persistent = persistent_store

    @property
    def cached_store(self) -> MessageStore:
        return self._cached

    @property
    def persistent_store(self) -> MessageStore:
        return self._persistent

    async def store_message(self, message: Message) -> None:
        """Store a message in both tiers.

        Raises:
            TierWriteError: If either tier's write failed
        """
        await write_both_tiers(
            self._cached.store_message(message.copy()),
            self._persistent.store_message(message.copy()),
        )

    async def store_messages(self, messages: list[Message]) -> None:
        """Store several messages in both tiers.

        Raises:
            TierWriteError: If either tier's write failed
        """
        await write_both_tiers(
            self._cached.store_messages([m.copy() for m in messages]),
            self._persistent.store_messages([m.copy() for m in messages]),
        )

    async def get_message_history(self, limit: int | None = None) -> list[Message]:
        """Get message history in chronological order.

        Strategy:
        1. Without a limit, return the complete persistent history
        2. With a limit, return the cache's answer if it has ``limit`` messages
        3. If the cache's last message is a summary, return the cache's answer:
           the summary stands in for everything older
        4. Otherwise ask the persistent tier, which applies the same
           summary boundary itself

        Args:
            limit: Maximum number of messages to return

        Returns:
            Messages in chronological order
        """
        if not limit or limit < 0:
            return await self._persistent.get_message_history()

        cached = await self._cached.get_message_history(limit)
        if len(cached) >= limit:
            return cached

        if cached and cached[-1].is_summary:
            logger.debug("Cache history ends at a summary boundary; not escalating")
            return cached

        logger.debug(f"Cache returned {len(cached)}/{limit} messages; reading persistent tier")
        return await self._persistent.get_message_history(limit)

    async def get_messages_by_type(
        self, type: MessageType, limit: int | None = None
    ) -> list[Message]:
        """Get messages of one type, cache first when a limit is given."""
        if not limit or limit < 0:
            return await self._persistent.get_messages_by_type(type)

        cached = await self._cached.get_messages_by_type(type, limit)
        if len(cached) >= limit:
            return cached

        return await self._persistent.get_messages_by_type(type, limit)

    async def search_by_regex(
        self,
        pattern: str,
        limit: int | None = None,
        type: MessageType | None = None,
    ) -> list[Message]:
        """Search message content, cache first when a limit is given."""
        if not limit or limit < 0:
            return await self._persistent.search_by_regex(pattern, None, type)

        cached = await self._cached.search_by_regex(pattern, limit, type)
        if len(cached) >= limit:
            return cached

        return await self._persistent.search_by_regex(pattern, limit, type)

    async def get_message_by_id(self, message_id: str) -> Message | None:
        """Get a message by ID from the cache, else the persistent tier.

        Returns:
            The message, or None if neither tier has it
        """
        message = await self._cached.get_message_by_id(message_id)
        if message is not None:
            return message
        return await self._persistent.get_message_by_id(message_id)

    async def close(self) -> None:
        """Close both tiers."""
        await asyncio.gather(self._cached.close(), self._persistent.close())
