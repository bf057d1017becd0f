"""Per-session SQLite connection handling for the persistent tiers."""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from ..models import SessionChangeEvent, SessionChangeType
from ..protocols import SessionProvider

logger = logging.getLogger(__name__)


class SessionDatabase(ABC):
    """Base for stores persisted in the active session's SQLite database.

    The active session is resolved on every call. Each session has its own
    database file, so a session switch only drops the open connection; the
    next call opens (and if needed creates) the new session's database.

    Subclasses implement ``_create_schema`` and may override
    ``_register_functions``.
    """

    def __init__(self, session_provider: SessionProvider) -> None:
        self._session_provider = session_provider
        self._conn: sqlite3.Connection | None = None
        self._db_path: Path | None = None
        self._closed = False
        self._session_provider.on_session_changed(self._handle_session_change)

    async def _connection(self) -> sqlite3.Connection:
        """Get a connection to the active session's database.

        Raises:
            RuntimeError: If the store has been closed
        """
        if self._closed:
            raise RuntimeError(f"{type(self).__name__} has been closed")

        session = await self._session_provider.get_active_session()
        if self._conn is not None and self._db_path == session.database_path:
            return self._conn

        self._disconnect()

        session.database_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(session.database_path))
        conn.row_factory = sqlite3.Row
        self._register_functions(conn)
        self._create_schema(conn)
        conn.commit()

        self._conn = conn
        self._db_path = session.database_path
        logger.debug(f"{type(self).__name__} opened {session.database_path}")
        return conn

    @abstractmethod
    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create the store's tables and indexes if they don't exist."""

    def _register_functions(self, conn: sqlite3.Connection) -> None:
        """Register SQL functions on a fresh connection."""

    def _handle_session_change(self, event: SessionChangeEvent) -> None:
        if event.type is SessionChangeType.SWITCHED:
            self._disconnect()

    def _disconnect(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._db_path = None

    def detach(self) -> None:
        """Stop listening for session changes."""
        self._session_provider.remove_session_listener(self._handle_session_change)

    async def close(self) -> None:
        """Close the database connection and stop listening for session changes."""
        if self._closed:
            return
        self._closed = True
        self.detach()
        self._disconnect()
