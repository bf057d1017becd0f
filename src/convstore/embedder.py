"""Embedding providers.

The storage layer only needs ``is_available`` and ``embed``. Embeddings are
produced locally by Ollama; when embedding is disabled a
``DisabledEmbedder`` stands in so semantic search degrades to empty results.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import EmbeddingError

logger = logging.getLogger(__name__)


class OllamaEmbedder:
    """
    Embedding provider backed by a local Ollama server.

    Example:
        >>> embedder = OllamaEmbedder(host="http://localhost:11434")
        >>> vector = await embedder.embed("Hello")
        >>> await embedder.close()
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 30.0,
        enabled: bool = True,
    ) -> None:
        """Initialize the embedder.

        Args:
            host: Ollama server host URL.
            model: Embedding model name (must support embeddings in Ollama).
            timeout: Request timeout in seconds.
            enabled: If False, is_available reports False.
        """
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._enabled = enabled
        self._http_client: httpx.AsyncClient | None = None

    @property
    def is_available(self) -> bool:
        """Whether embedding is enabled and a host is configured."""
        return self._enabled and bool(self.host)

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.host,
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            )
        return self._http_client

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding for ``text``.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            EmbeddingError: If the embedder is unavailable, the request fails
                or the response carries no embedding
        """
        if not self.is_available:
            raise EmbeddingError("Embedding provider is not available")

        try:
            response = await self._client().post(
                "/api/embeddings",
                json={"model": self.model, "prompt": text},
            )
            response.raise_for_status()
            data: Any = response.json()
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e
        except ValueError as e:
            raise EmbeddingError(f"Invalid JSON from Ollama: {e}") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingError(f"Unexpected Ollama response: {data}")

        logger.debug(f"Embedded {len(text)} chars into {len(embedding)} dims with {self.model}")
        return [float(v) for v in embedding]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class DisabledEmbedder:
    """Embedding provider used when embedding is turned off."""

    @property
    def is_available(self) -> bool:
        return False

    async def embed(self, text: str) -> list[float]:
        raise EmbeddingError("Embedding is disabled")

    async def close(self) -> None:
        return None
