"""Exceptions raised by the conversation storage layer.

Point lookups that miss return ``None`` rather than raising, and an
unavailable embedding provider degrades to empty search results, so neither
has an exception class here.
"""

from __future__ import annotations


class ConvStoreError(Exception):
    """Base class for storage errors."""


class ValidationError(ConvStoreError, ValueError):
    """Raised when an entity is rejected before any state changes."""


class TierWriteError(ConvStoreError):
    """Raised when a write to one or both storage tiers fails.

    The other tier's write is not rolled back; it may have succeeded.

    Attributes:
        tier: "cached", "persistent" or "both"
        errors: The underlying exceptions, in tier order
    """

    def __init__(self, tier: str, errors: list[BaseException]) -> None:
        details = "; ".join(f"{type(e).__name__}: {e}" for e in errors)
        super().__init__(f"Write to {tier} tier failed: {details}")
        self.tier = tier
        self.errors = errors


class SearchError(ConvStoreError):
    """Raised when a semantic search fails after embedding was available."""


class EmbeddingError(ConvStoreError):
    """Raised when the embedding provider cannot produce a vector."""


class VectorStorageError(ConvStoreError):
    """Raised when embeddings could not be stored for one or more messages.

    Attributes:
        failures: Mapping of message ID to the exception raised for it
    """

    def __init__(self, failures: dict[str, BaseException]) -> None:
        ids = ", ".join(failures)
        super().__init__(f"Vector storage failed for message(s): {ids}")
        self.failures = failures


class SessionNotFoundError(ConvStoreError, LookupError):
    """Raised when switching to a session that does not exist."""

    def __init__(self, session_name: str) -> None:
        super().__init__(f"Session not found: {session_name!r}")
        self.session_name = session_name
