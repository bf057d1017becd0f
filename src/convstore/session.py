"""Session lifecycle management.

Each session lives in its own directory named after its creation time
(hex epoch milliseconds) and holds the SQLite database shared by the
persistent message and vector tiers plus a small ``info.json`` file.
Subscribers are notified synchronously whenever the active session is
created, switched or refreshed.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from .errors import SessionNotFoundError
from .models import SessionChangeEvent, SessionChangeType, SessionInfo, to_epoch_ms, utc_now
from .protocols import SessionChangeHandler

logger = logging.getLogger(__name__)


class SessionService:
    """Creates, loads and switches conversation sessions.

    Exactly one session is active at a time. Handlers registered with
    ``on_session_changed`` run inside the call that changed the session, so
    by the time ``switch_to_session`` returns every cache has been cleared.

    Example:
        >>> sessions = SessionService("~/.convstore/session")
        >>> session = await sessions.get_active_session()
        >>> sessions.on_session_changed(lambda event: print(event.type))
        >>> await sessions.start_new_session()
    """

    def __init__(self, base_path: str | Path) -> None:
        """Initialize the session service.

        Args:
            base_path: Directory holding one sub-directory per session.
                       Created on first use.
        """
        self._base_path = Path(base_path).expanduser()
        self._current: SessionInfo | None = None
        self._handlers: list[SessionChangeHandler] = []

    @property
    def base_path(self) -> Path:
        """Directory holding all sessions."""
        return self._base_path

    # ===== Subscriptions =====

    def on_session_changed(self, handler: SessionChangeHandler) -> None:
        """Register a handler for session change events."""
        if handler not in self._handlers:
            self._handlers.append(handler)

    def remove_session_listener(self, handler: SessionChangeHandler) -> None:
        """Unregister a handler. Unknown handlers are ignored."""
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        """Number of registered handlers."""
        return len(self._handlers)

    # ===== Active session =====

    async def get_active_session(self) -> SessionInfo:
        """Get the active session, creating a new one if none is loaded.

        Returns:
            The active session descriptor
        """
        if self._current is not None:
            return self._current

        self._current = self._create_session()
        logger.info(f"Created session {self._current.name}")
        self._emit(SessionChangeType.SWITCHED, self._current, None)
        return self._current

    async def get_current_active_session(self) -> SessionInfo | None:
        """Get the active session without creating one."""
        return self._current

    async def start_new_session(self) -> SessionInfo:
        """Create a fresh session and make it active.

        Returns:
            The new session descriptor
        """
        previous = self._current
        self._current = self._create_session()
        logger.info(f"Started new session {self._current.name}")
        self._emit(SessionChangeType.SWITCHED, self._current, previous)
        return self._current

    async def switch_to_session(self, session_name: str) -> SessionInfo:
        """Make an existing session active.

        Switching to the session that is already active only refreshes its
        last-active timestamp.

        Args:
            session_name: Hex name of the session

        Returns:
            The now-active session descriptor

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        previous = self._current
        if previous is not None and previous.name == session_name:
            self._touch(previous)
            return previous

        session = self._load_session(session_name)
        self._current = session
        self._touch(session)
        logger.info(f"Switched to session {session_name}")
        self._emit(SessionChangeType.SWITCHED, session, previous)
        return session

    async def update_last_active_date(self) -> None:
        """Refresh the active session's last-active timestamp.

        Raises:
            RuntimeError: If no session is active
        """
        if self._current is None:
            raise RuntimeError("No active session to update")

        self._touch(self._current)
        self._emit(SessionChangeType.UPDATED, self._current, self._current)

    async def get_session_history(self) -> list[SessionInfo]:
        """List all stored sessions, most recently active first."""
        if not self._base_path.exists():
            return []

        sessions: list[SessionInfo] = []
        for entry in self._base_path.iterdir():
            if not entry.is_dir():
                continue
            try:
                sessions.append(self._load_session(entry.name))
            except (SessionNotFoundError, OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable session {entry.name}: {e}")

        return sorted(sessions, key=lambda s: s.last_active, reverse=True)

    # ===== Internals =====

    def _create_session(self) -> SessionInfo:
        """Create the directory and info file of a new session."""
        self._base_path.mkdir(parents=True, exist_ok=True)

        now = utc_now()
        millis = to_epoch_ms(now)
        # Two sessions created within the same millisecond get distinct names
        while (self._base_path / format(millis, "x")).exists():
            millis += 1
        name = format(millis, "x")

        directory = self._base_path / name
        directory.mkdir(parents=True)

        session = SessionInfo(name=name, last_active=now, directory=directory)
        self._save_session_info(session)
        return session

    def _load_session(self, session_name: str) -> SessionInfo:
        directory = self._base_path / session_name
        info_path = directory / "info.json"
        if not info_path.is_file():
            raise SessionNotFoundError(session_name)

        with info_path.open("r", encoding="utf-8") as f:
            info = json.load(f)

        return SessionInfo(
            name=session_name,
            last_active=datetime.fromisoformat(info["last_active"]),
            directory=directory,
        )

    def _save_session_info(self, session: SessionInfo) -> None:
        info = {"last_active": session.last_active.isoformat()}
        with session.info_path.open("w", encoding="utf-8") as f:
            json.dump(info, f, indent=2)

    def _touch(self, session: SessionInfo) -> None:
        session.last_active = utc_now()
        self._save_session_info(session)

    def _emit(
        self,
        change_type: SessionChangeType,
        active: SessionInfo,
        previous: SessionInfo | None,
    ) -> None:
        event = SessionChangeEvent(
            type=change_type,
            active_session=active,
            previous_session=previous,
        )
        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Session change handler {handler!r} failed")
