"""Natural-language message repository.

Fuses embedding, vector search and message lookup into a single semantic
search, and stores an embedding next to every message when an embedding
provider is available.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ..errors import SearchError, VectorStorageError
from ..models import Message, MessageType
from ..protocols import Embedder, MessageReader, MessageWriter, VectorStore

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10


class MessageReadWriter(MessageReader, MessageWriter, Protocol):
    """The message capabilities this repository calls."""


class NaturalMessageRepository:
    """Semantic search and embedding-aware storage over the message tiers.

    When the embedding provider is unavailable, ``search_similar`` returns
    an empty list and messages are stored without embeddings.

    Example:
        >>> repo = NaturalMessageRepository(embedder, vector_repo, message_repo)
        >>> await repo.store_message(message)
        >>> similar = await repo.search_similar("deployment plans", limit=5)
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        message_store: MessageReadWriter,
    ) -> None:
        """Initialize the repository.

        Args:
            embedder: Converts text to vectors; may be unavailable
            vector_store: Stores and ranks message embeddings
            message_store: Stores and resolves messages
        """
        self._embedder = embedder
        self._vectors = vector_store
        self._messages = message_store

    @property
    def is_vector_search_available(self) -> bool:
        """Whether the embedding provider is available."""
        return self._embedder.is_available

    async def search_similar(
        self,
        text: str,
        limit: int | None = None,
        type: MessageType | None = None,
    ) -> list[Message]:
        """Find stored messages semantically similar to ``text``.

        Neighbours whose message can no longer be resolved, or whose type
        does not match ``type``, are dropped, so fewer than ``limit``
        messages may be returned.

        Args:
            text: Query text
            limit: Maximum number of neighbours to consider (default 10)
            type: Optional message type filter

        Returns:
            Messages ordered by descending similarity; empty when embedding
            is unavailable

        Raises:
            SearchError: If embedding, vector search or message lookup fails
        """
        if not self.is_vector_search_available:
            logger.debug("Vector search unavailable; returning no results")
            return []

        wanted = MessageType(type) if type is not None else None
        try:
            query = await self._embedder.embed(text)
            neighbours = await self._vectors.search_similar(query, limit or DEFAULT_SEARCH_LIMIT)

            messages: list[Message] = []
            for neighbour in neighbours:
                message = await self._messages.get_message_by_id(neighbour.message_id)
                if message is None:
                    logger.debug(f"Dropping vector hit for unknown message {neighbour.message_id}")
                    continue
                if wanted is not None and message.type is not wanted:
                    continue
                messages.append(message)
        except Exception as e:
            raise SearchError(f"Vector search failed: {e}") from e

        return messages

    async def store_message(self, message: Message) -> None:
        """Store a message and, if possible, its embedding.

        Raises:
            TierWriteError: If storing the message failed
            VectorStorageError: If the embedding could not be produced or stored
        """
        await self._messages.store_message(message)

        if self.is_vector_search_available:
            failures = await self._store_embeddings([message])
            if failures:
                raise VectorStorageError(failures)

    async def store_messages(self, messages: list[Message]) -> None:
        """Store messages and, if possible, their embeddings.

        Every message's embedding is attempted even if an earlier one fails.

        Raises:
            TierWriteError: If storing the messages failed
            VectorStorageError: Listing every message whose embedding failed
        """
        await self._messages.store_messages(messages)

        if self.is_vector_search_available:
            failures = await self._store_embeddings(messages)
            if failures:
                raise VectorStorageError(failures)

    async def _store_embeddings(self, messages: list[Message]) -> dict[str, BaseException]:
        failures: dict[str, BaseException] = {}
        for message in messages:
            try:
                vector = await self._embedder.embed(message.content)
                await self._vectors.store_vector(vector, message.id)
            except Exception as e:
                logger.warning(f"Vector storage failed for message {message.id}: {e}")
                failures[message.id] = e
        return failures

    # ===== Plain reads =====

    async def get_message_history(self, limit: int | None = None) -> list[Message]:
        return await self._messages.get_message_history(limit)

    async def get_messages_by_type(
        self, type: MessageType, limit: int | None = None
    ) -> list[Message]:
        return await self._messages.get_messages_by_type(type, limit)

    async def search_by_regex(
        self,
        pattern: str,
        limit: int | None = None,
        type: MessageType | None = None,
    ) -> list[Message]:
        return await self._messages.search_by_regex(pattern, limit, type)

    async def get_message_by_id(self, message_id: str) -> Message | None:
        return await self._messages.get_message_by_id(message_id)
