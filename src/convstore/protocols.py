"""Capability interfaces for the storage layer.

Components depend on the narrowest set of these they actually call. Reading
and writing are separate capabilities; a full message store is simply a type
that provides both.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from .models import Message, MessageType, SessionChangeEvent, SessionInfo, VectorSearchResult

SessionChangeHandler = Callable[[SessionChangeEvent], None]


class SessionProvider(Protocol):
    """
    Protocol for session provider implementations.

    Owns the identity of the active session and notifies subscribers when
    it is created or switched.
    """

    async def get_active_session(self) -> SessionInfo:
        """Get the active session, creating one if none exists."""
        ...

    def on_session_changed(self, handler: SessionChangeHandler) -> None:
        """Register a handler for session change events."""
        ...

    def remove_session_listener(self, handler: SessionChangeHandler) -> None:
        """Unregister a previously registered handler."""
        ...


class Embedder(Protocol):
    """
    Protocol for embedding providers.

    Callers check ``is_available`` first; ``embed`` may still fail.
    """

    @property
    def is_available(self) -> bool:
        """Whether embeddings can currently be produced."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Convert text to an embedding vector."""
        ...


class MessageReader(Protocol):
    """Protocol for reading stored messages."""

    async def get_message_history(self, limit: int | None = None) -> list[Message]:
        """Get messages in chronological order, honouring summary boundaries."""
        ...

    async def get_messages_by_type(
        self, type: MessageType, limit: int | None = None
    ) -> list[Message]:
        """Get messages of one type in chronological order."""
        ...

    async def search_by_regex(
        self,
        pattern: str,
        limit: int | None = None,
        type: MessageType | None = None,
    ) -> list[Message]:
        """Case-insensitive pattern search over message content."""
        ...

    async def get_message_by_id(self, message_id: str) -> Message | None:
        """Get one message, or None if it is not stored."""
        ...


class MessageWriter(Protocol):
    """Protocol for writing messages (upsert by ID)."""

    async def store_message(self, message: Message) -> None:
        """Store a message, replacing any message with the same ID."""
        ...

    async def store_messages(self, messages: list[Message]) -> None:
        """Store several messages."""
        ...


class MessageStore(MessageReader, MessageWriter, Protocol):
    """Read and write access to messages."""

    async def close(self) -> None:
        """Release resources and stop listening for session changes."""
        ...


class NaturalMessageReader(Protocol):
    """Protocol for semantic (embedding based) message search."""

    @property
    def is_vector_search_available(self) -> bool:
        """Whether semantic search can run."""
        ...

    async def search_similar(
        self,
        text: str,
        limit: int | None = None,
        type: MessageType | None = None,
    ) -> list[Message]:
        """Find messages semantically similar to ``text``."""
        ...


class VectorStore(Protocol):
    """Protocol for storing and ranking message embeddings."""

    async def store_vector(self, vector: list[float], message_id: str) -> None:
        """Store the embedding for a message, replacing any previous one."""
        ...

    async def search_similar(
        self, vector: list[float], limit: int = 10
    ) -> list[VectorSearchResult]:
        """Rank stored vectors by cosine similarity to ``vector``."""
        ...

    async def close(self) -> None:
        """Release resources and stop listening for session changes."""
        ...
