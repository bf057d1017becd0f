"""Shared pytest fixtures for conversation storage tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from convstore.config import ConvStoreConfig
from convstore.errors import EmbeddingError
from convstore.models import Message, MessageType
from convstore.session import SessionService

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeEmbedder:
    """Deterministic embedder mapping known words onto fixed axes."""

    AXES = ("deploy", "database", "weather", "music")

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.calls: list[str] = []
        self.fail_on: set[str] = set()

    @property
    def is_available(self) -> bool:
        return self.available

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError(f"cannot embed {text!r}")

        lowered = text.lower()
        vector = [float(lowered.count(axis)) for axis in self.AXES]
        # Keep every vector non-zero so similarity is always defined
        vector.append(0.1)
        return vector

    async def close(self) -> None:
        return None


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for test data."""
    return tmp_path


@pytest.fixture
def session_service(temp_dir: Path) -> SessionService:
    """Session service rooted in a temporary directory."""
    return SessionService(temp_dir / "session")


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Factory for messages with predictable, increasing timestamps."""

    def _make(
        id: str,
        content: str | None = None,
        type: MessageType = MessageType.USER,
        offset: int = 0,
        sender: str = "user",
        metadata: dict | None = None,
    ) -> Message:
        return Message(
            id=id,
            type=type,
            content=content if content is not None else f"message {id}",
            sender=sender,
            timestamp=BASE_TIME + timedelta(seconds=offset),
            metadata=metadata or {},
        )

    return _make


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    """Embedder that needs no Ollama server."""
    return FakeEmbedder()


@pytest.fixture
def test_config(temp_dir: Path) -> ConvStoreConfig:
    """Return test configuration with a temporary data directory."""
    return ConvStoreConfig(
        data_dir=str(temp_dir / "data"),
        log_level="DEBUG",
        embedding={"enabled": False},
    )
