"""Data model for conversation storage.

Messages, vector entries and session descriptors shared by every storage
tier. Entities cross tier boundaries as copies; nothing here is meant to be
shared mutably between the cached and persistent tiers.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Self


class MessageType(str, Enum):
    """Closed set of message kinds."""

    USER = "user"
    AGENT = "agent"
    TOOL = "tool"
    ERROR = "error"
    SUMMARY = "summary"
    SYSTEM = "system"
    TASKMASTER = "taskmaster"
    FILE_OPERATION = "file_operation"
    PROMPT = "prompt"
    CHOICE = "choice"
    USER_CHOICE = "user-choice"
    USER_INPUT = "user-input"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds, truncating.

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int | float) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def truncate_to_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision, the resolution timestamps are stored at."""
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


@dataclass
class Message:
    """A single conversation message.

    Storing a message whose ``id`` already exists replaces the stored one,
    which is how streamed responses update a single logical message.

    Attributes:
        id: Unique, stable identifier
        type: Message kind
        content: Message text
        sender: Label of the author ("user", "system", an agent name, ...)
        timestamp: When the message was produced, kept at millisecond resolution
        metadata: Open bag of type-specific details
    """

    id: str
    type: MessageType
    content: str
    sender: str
    timestamp: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.type, MessageType):
            self.type = MessageType(self.type)
        # Naive timestamps are UTC so mixed inputs still order correctly
        if self.timestamp.tzinfo is None:
            self.timestamp = self.timestamp.replace(tzinfo=timezone.utc)
        self.timestamp = truncate_to_ms(self.timestamp)

    @property
    def is_summary(self) -> bool:
        """Whether this message is a compacted stand-in for older history."""
        return self.type is MessageType.SUMMARY

    def copy(self) -> Message:
        """Return an independent copy (metadata is deep-copied)."""
        return Message(
            id=self.id,
            type=self.type,
            content=self.content,
            sender=self.sender,
            timestamp=self.timestamp,
            metadata=copy.deepcopy(self.metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "sender": self.sender,
            "timestamp": to_epoch_ms(self.timestamp),
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create Message from dictionary."""
        timestamp = data["timestamp"]
        if not isinstance(timestamp, datetime):
            timestamp = from_epoch_ms(timestamp)
        return cls(
            id=str(data["id"]),
            type=MessageType(data["type"]),
            content=str(data["content"]),
            sender=str(data["sender"]),
            timestamp=timestamp,
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class VectorEntry:
    """An embedding stored for a message, keyed by the message ID."""

    message_id: str
    vector: list[float]
    stored_at: float

    @property
    def id(self) -> str:
        return self.message_id


@dataclass
class VectorSearchResult:
    """A stored vector ranked against a query.

    Attributes:
        id: Vector entry ID (equal to the message ID)
        message_id: ID of the message the vector belongs to
        vector: Copy of the stored embedding
        similarity: Cosine similarity in [0, 1]
    """

    id: str
    message_id: str
    vector: list[float]
    similarity: float


@dataclass
class SessionInfo:
    """Descriptor of a conversation session.

    Attributes:
        name: Lowercase hex of the creation time in epoch milliseconds
        last_active: Last time the session was used
        directory: Directory owning the session's files
    """

    name: str
    last_active: datetime
    directory: Path

    @property
    def database_path(self) -> Path:
        """SQLite database holding both messages and vectors."""
        return self.directory / "message.db"

    @property
    def info_path(self) -> Path:
        """Small JSON metadata file for the session."""
        return self.directory / "info.json"


class SessionChangeType(str, Enum):
    """Kinds of session change notifications."""

    SWITCHED = "session-switched"
    UPDATED = "session-updated"


@dataclass
class SessionChangeEvent:
    """Notification that the active session changed or was refreshed."""

    type: SessionChangeType
    active_session: SessionInfo
    previous_session: SessionInfo | None = None
    timestamp: datetime = field(default_factory=utc_now)
