"""Persistent message tier backed by the session's SQLite database.

Holds the complete message history of a session with no size bound.
Chronological order is ``(timestamp, rowid)``: messages with equal
timestamps keep the order in which they were first stored, and updating a
message keeps its original position.
"""

from __future__ import annotations

import functools
import json
import logging
import sqlite3
from typing import Any

from ..models import Message, MessageType, from_epoch_ms, to_epoch_ms
from ..protocols import SessionProvider
from .cached_messages import content_matcher
from .sqlite_base import SessionDatabase

logger = logging.getLogger(__name__)

_COLUMNS = "id, content, type, sender, timestamp, metadata"

_UPSERT = f"""
    INSERT INTO messages ({_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        content = excluded.content,
        type = excluded.type,
        sender = excluded.sender,
        timestamp = excluded.timestamp,
        metadata = excluded.metadata
"""

_cached_matcher = functools.lru_cache(maxsize=64)(content_matcher)


def _regexp(pattern: str | None, value: str | None) -> bool:
    """SQL REGEXP implementation (``value REGEXP pattern``)."""
    if pattern is None or value is None:
        return False
    return _cached_matcher(pattern)(value)


class SQLiteMessageStore(SessionDatabase):
    """Durable message store for the active session.

    Example:
        >>> store = SQLiteMessageStore(session_service)
        >>> await store.store_message(message)
        >>> history = await store.get_message_history()
        >>> await store.close()
    """

    def __init__(self, session_provider: SessionProvider) -> None:
        """Initialize the store.

        Args:
            session_provider: Provider of the active session; its database
                              path decides where messages are written
        """
        super().__init__(session_provider)

    def _register_functions(self, conn: sqlite3.Connection) -> None:
        conn.create_function("regexp", 2, _regexp, deterministic=True)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create the messages table and its indexes if they don't exist."""
        cursor = conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                type TEXT NOT NULL,
                sender TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                metadata TEXT,
                created_at INTEGER DEFAULT (strftime('%s', 'now'))
            )
        """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_type ON messages(type)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_created_at ON messages(created_at)")

    # ===== Writes =====

    async def store_message(self, message: Message) -> None:
        """Store a message, replacing any stored message with the same ID."""
        conn = await self._connection()
        with conn:
            conn.execute(_UPSERT, self._to_row(message))

    async def store_messages(self, messages: list[Message]) -> None:
        """Store several messages in one transaction."""
        if not messages:
            return
        conn = await self._connection()
        with conn:
            conn.executemany(_UPSERT, [self._to_row(m) for m in messages])

    # ===== Reads =====

    async def get_message_history(self, limit: int | None = None) -> list[Message]:
        """Get stored messages in chronological order.

        Only messages up to and including the most recent summary are
        returned; with a limit, the last ``limit`` of those.

        Args:
            limit: Maximum number of messages. None, 0 or a negative value returns all.
        """
        conn = await self._connection()

        summary = conn.execute(
            """
            SELECT timestamp, rowid FROM messages
            WHERE type = ?
            ORDER BY timestamp DESC, rowid DESC
            LIMIT 1
        """,
            (MessageType.SUMMARY.value,),
        ).fetchone()

        where = ""
        params: list[Any] = []
        if summary is not None:
            where = "WHERE timestamp < ? OR (timestamp = ? AND rowid <= ?)"
            params = [summary["timestamp"], summary["timestamp"], summary["rowid"]]

        return self._select_chronological(conn, where, params, limit)

    async def get_messages_by_type(
        self, type: MessageType, limit: int | None = None
    ) -> list[Message]:
        """Get stored messages of one type, the most recent ``limit`` if given."""
        conn = await self._connection()
        return self._select_chronological(
            conn, "WHERE type = ?", [MessageType(type).value], limit
        )

    async def search_by_regex(
        self,
        pattern: str,
        limit: int | None = None,
        type: MessageType | None = None,
    ) -> list[Message]:
        """Case-insensitive search over stored content.

        An invalid regular expression is matched as a plain substring.
        """
        conn = await self._connection()

        where = "WHERE content REGEXP ?"
        params: list[Any] = [pattern]
        if type is not None:
            where += " AND type = ?"
            params.append(MessageType(type).value)

        return self._select_chronological(conn, where, params, limit)

    async def get_message_by_id(self, message_id: str) -> Message | None:
        """Get a stored message by ID, or None."""
        conn = await self._connection()
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM messages WHERE id = ?",
            (message_id,),
        ).fetchone()
        return self._from_row(row) if row is not None else None

    async def count(self) -> int:
        """Number of messages stored for the active session."""
        conn = await self._connection()
        return int(conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0])

    # ===== Row mapping =====

    def _select_chronological(
        self,
        conn: sqlite3.Connection,
        where: str,
        params: list[Any],
        limit: int | None,
    ) -> list[Message]:
        if limit and limit > 0:
            # Newest N first, then flip back to chronological order
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM messages {where}
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?
            """,
                [*params, limit],
            ).fetchall()
            rows.reverse()
        else:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM messages {where} ORDER BY timestamp ASC, rowid ASC",
                params,
            ).fetchall()

        return [self._from_row(row) for row in rows]

    @staticmethod
    def _to_row(message: Message) -> tuple[Any, ...]:
        metadata = json.dumps(message.metadata, default=str) if message.metadata else None
        return (
            message.id,
            message.content,
            message.type.value,
            message.sender,
            to_epoch_ms(message.timestamp),
            metadata,
        )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Message:
        metadata: dict[str, Any] = {}
        if row["metadata"]:
            try:
                parsed = json.loads(row["metadata"])
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring unreadable metadata of message {row['id']}: {e}")
            else:
                if isinstance(parsed, dict):
                    metadata = parsed
                else:
                    logger.warning(f"Ignoring non-object metadata of message {row['id']}")

        try:
            message_type = MessageType(row["type"])
        except ValueError:
            logger.warning(f"Unknown type {row['type']!r} for message {row['id']}, reading as system")
            message_type = MessageType.SYSTEM

        return Message(
            id=row["id"],
            type=message_type,
            content=row["content"],
            sender=row["sender"],
            timestamp=from_epoch_ms(row["timestamp"]),
            metadata=metadata,
        )
