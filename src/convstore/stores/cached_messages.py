"""In-memory message tier.

Fast, bounded storage for the active session's recent messages. Entries
are kept in chronological order and the oldest are evicted as soon as a
write pushes the count past the bound.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from ..models import Message, MessageType
from ..protocols import SessionProvider
from .session_cache import SessionScopedCache

logger = logging.getLogger(__name__)


def content_matcher(pattern: str) -> Callable[[str], bool]:
    """Build a case-insensitive predicate for message content.

    An invalid regular expression falls back to a plain case-insensitive
    substring match.
    """
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error:
        needle = pattern.lower()
        return lambda text: needle in text.lower()
    return lambda text: regex.search(text) is not None


def summary_bounded(messages: list[Message], limit: int | None) -> list[Message]:
    """Apply the summary boundary to a chronological list.

    Keeps everything up to and including the most recent summary message
    (the whole list when there is none), then the last ``limit`` of those.
    """
    end = len(messages)
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].is_summary:
            end = index + 1
            break

    bounded = messages[:end]
    if limit and limit > 0:
        bounded = bounded[-limit:]
    return bounded


class CachedMessageStore(SessionScopedCache):
    """Session-scoped, bounded in-memory message store.

    Storing a message with an existing ID replaces it in place. The cache
    is cleared whenever the active session is switched.

    Example:
        >>> cache = CachedMessageStore(session_service, max_entries=100)
        >>> await cache.store_message(message)
        >>> recent = await cache.get_message_history(limit=10)
    """

    def __init__(self, session_provider: SessionProvider, max_entries: int = 100) -> None:
        """Initialize the cache.

        Args:
            session_provider: Provider of the active session and its change events
            max_entries: Maximum number of messages retained. When exceeded,
                         the oldest messages by timestamp are removed.
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        super().__init__(session_provider)
        self._max_entries = max_entries
        self._messages: list[Message] = []

    @property
    def max_entries(self) -> int:
        """Configured maximum number of messages."""
        return self._max_entries

    @property
    def message_count(self) -> int:
        """Current number of cached messages."""
        return len(self._messages)

    async def store_message(self, message: Message) -> None:
        """Store a message, replacing any cached message with the same ID."""
        await self._ensure_session_bound()
        self._upsert(message.copy())
        self._evict()

    async def store_messages(self, messages: list[Message]) -> None:
        """Store several messages."""
        await self._ensure_session_bound()
        for message in messages:
            self._upsert(message.copy())
        self._evict()

    async def get_message_history(self, limit: int | None = None) -> list[Message]:
        """Get cached messages in chronological order.

        Messages newer than the most recent summary are not returned; the
        summary is the last entry of the result.

        Args:
            limit: Maximum number of messages to return. None, 0 or a
                   negative value returns all.

        Returns:
            Copies of the cached messages
        """
        await self._ensure_session_bound()
        return [m.copy() for m in summary_bounded(self._messages, limit)]

    async def get_messages_by_type(
        self, type: MessageType, limit: int | None = None
    ) -> list[Message]:
        """Get cached messages of one type, the most recent ``limit`` if given."""
        await self._ensure_session_bound()
        matches = [m for m in self._messages if m.type is MessageType(type)]
        if limit and limit > 0:
            matches = matches[-limit:]
        return [m.copy() for m in matches]

    async def search_by_regex(
        self,
        pattern: str,
        limit: int | None = None,
        type: MessageType | None = None,
    ) -> list[Message]:
        """Search cached message content, the most recent ``limit`` matches if given."""
        await self._ensure_session_bound()
        matches = content_matcher(pattern)
        wanted = MessageType(type) if type is not None else None

        results = [
            m
            for m in self._messages
            if (wanted is None or m.type is wanted) and matches(m.content)
        ]
        if limit and limit > 0:
            results = results[-limit:]
        return [m.copy() for m in results]

    async def get_message_by_id(self, message_id: str) -> Message | None:
        """Get a cached message by ID, or None."""
        await self._ensure_session_bound()
        for message in self._messages:
            if message.id == message_id:
                return message.copy()
        return None

    def _upsert(self, message: Message) -> None:
        for index, existing in enumerate(self._messages):
            if existing.id == message.id:
                self._messages[index] = message
                break
        else:
            self._messages.append(message)

        # Stable sort keeps insertion order among equal timestamps
        self._messages.sort(key=lambda m: m.timestamp)

    def _evict(self) -> None:
        overflow = len(self._messages) - self._max_entries
        if overflow > 0:
            del self._messages[:overflow]
            logger.debug(f"Evicted {overflow} cached message(s)")

    def _clear(self) -> None:
        self._messages = []
