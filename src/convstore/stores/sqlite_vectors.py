"""Persistent vector tier backed by the session's SQLite database.

Embeddings are stored as little-endian float32 blobs, one row per message.
Ranking runs inside SQLite through a registered ``cosine_similarity``
function.
"""

from __future__ import annotations

import logging
import sqlite3

from ..models import VectorSearchResult
from ..protocols import SessionProvider
from ..similarity import blob_cosine_similarity, blob_to_vector, validate_vector, vector_to_blob
from .sqlite_base import SessionDatabase

logger = logging.getLogger(__name__)


class SQLiteVectorStore(SessionDatabase):
    """Durable vector store for the active session.

    Example:
        >>> store = SQLiteVectorStore(session_service)
        >>> await store.store_vector([0.1, 0.2, 0.3], "msg-1")
        >>> results = await store.search_similar([0.1, 0.2, 0.3], limit=5)
    """

    def __init__(self, session_provider: SessionProvider) -> None:
        super().__init__(session_provider)

    def _register_functions(self, conn: sqlite3.Connection) -> None:
        conn.create_function("cosine_similarity", 2, blob_cosine_similarity, deterministic=True)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create the vectors table and its indexes if they don't exist."""
        cursor = conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS vectors (
                id TEXT PRIMARY KEY,
                message_id TEXT NOT NULL,
                vector BLOB NOT NULL,
                created_at INTEGER DEFAULT (strftime('%s', 'now'))
            )
        """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_vectors_message_id ON vectors(message_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_vectors_created_at ON vectors(created_at)")

    async def store_vector(self, vector: list[float], message_id: str) -> None:
        """Store the embedding for a message, replacing any previous one.

        Raises:
            ValidationError: If the vector is empty or not finite
        """
        values = validate_vector(vector)
        conn = await self._connection()
        with conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO vectors (id, message_id, vector)
                VALUES (?, ?, ?)
            """,
                (message_id, message_id, sqlite3.Binary(vector_to_blob(values))),
            )

    async def search_similar(
        self, vector: list[float], limit: int = 10
    ) -> list[VectorSearchResult]:
        """Rank stored vectors by cosine similarity to ``vector``.

        Negative similarities are dropped; ties are ordered by message ID.
        """
        if limit <= 0:
            return []

        conn = await self._connection()
        query = sqlite3.Binary(vector_to_blob(vector))
        rows = conn.execute(
            """
            SELECT id, message_id, vector, similarity FROM (
                SELECT id, message_id, vector, cosine_similarity(vector, ?) AS similarity
                FROM vectors
            )
            WHERE similarity >= 0
            ORDER BY similarity DESC, message_id ASC
            LIMIT ?
        """,
            (query, limit),
        ).fetchall()

        return [
            VectorSearchResult(
                id=row["id"],
                message_id=row["message_id"],
                vector=blob_to_vector(row["vector"]),
                similarity=float(row["similarity"]),
            )
            for row in rows
        ]

    async def get_vector(self, message_id: str) -> list[float] | None:
        """Get the stored vector for a message, or None."""
        conn = await self._connection()
        row = conn.execute(
            "SELECT vector FROM vectors WHERE message_id = ?",
            (message_id,),
        ).fetchone()
        return blob_to_vector(row["vector"]) if row is not None else None

    async def count(self) -> int:
        """Number of vectors stored for the active session."""
        conn = await self._connection()
        return int(conn.execute("SELECT COUNT(*) FROM vectors").fetchone()[0])
