"""Vector math shared by the in-memory and SQLite vector tiers."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from .errors import ValidationError


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity between two vectors.

    Vectors of different length, and zero vectors, have similarity 0.0.
    The result is clamped to [-1, 1] to absorb floating point drift.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb)) / (norm_a * norm_b)
    if math.isnan(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))


def validate_vector(vector: Sequence[float]) -> list[float]:
    """Return a float copy of ``vector`` or raise if it cannot be stored.

    Raises:
        ValidationError: If the vector is empty or holds non-finite values
    """
    if len(vector) == 0:
        raise ValidationError("Vector cannot be empty")

    values = [float(v) for v in vector]
    if not all(math.isfinite(v) for v in values):
        raise ValidationError("Vector contains non-finite values")
    return values


def vector_to_blob(vector: Sequence[float]) -> bytes:
    """Encode a vector as little-endian float32 bytes."""
    return np.asarray(vector, dtype="<f4").tobytes()


def blob_to_vector(blob: bytes) -> list[float]:
    """Decode little-endian float32 bytes into a list of floats."""
    return np.frombuffer(blob, dtype="<f4").astype(np.float64).tolist()


def blob_cosine_similarity(blob_a: bytes | None, blob_b: bytes | None) -> float:
    """Cosine similarity between two float32 blobs (SQL function body)."""
    if not blob_a or not blob_b:
        return 0.0
    if len(blob_a) % 4 or len(blob_b) % 4:
        return 0.0
    return cosine_similarity(
        np.frombuffer(blob_a, dtype="<f4"),
        np.frombuffer(blob_b, dtype="<f4"),
    )
