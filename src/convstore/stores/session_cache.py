"""Session binding shared by the in-memory tiers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ..models import SessionChangeEvent, SessionChangeType
from ..protocols import SessionProvider

logger = logging.getLogger(__name__)


class SessionScopedCache(ABC):
    """Base for caches whose contents belong to a single session.

    The cache asks the provider for the active session once, on first use,
    and remembers its name. A ``session-switched`` notification clears the
    contents and rebinds to the new session immediately; an operation that
    was already suspended when the switch happened completes against the
    cleared cache instead of failing.

    A detached cache no longer receives notifications, so it compares the
    active session on every call and clears itself when the session has
    changed. A closed cache raises ``RuntimeError``.

    Subclasses implement ``_clear``.
    """

    def __init__(self, session_provider: SessionProvider) -> None:
        self._session_provider = session_provider
        self._session_name: str | None = None
        self._detached = False
        self._closed = False
        self._session_provider.on_session_changed(self._handle_session_change)

    @property
    def session_name(self) -> str | None:
        """Name of the session the cache is bound to, if bound yet."""
        return self._session_name

    async def _ensure_session_bound(self) -> None:
        if self._closed:
            raise RuntimeError(f"{type(self).__name__} has been closed")
        if self._session_name is not None and not self._detached:
            return

        session = await self._session_provider.get_active_session()
        if self._detached:
            if self._session_name != session.name:
                self._clear()
                self._session_name = session.name
                logger.debug(f"Detached {type(self).__name__} rebound to session {session.name}")
            return

        # A switch notification may have bound us while we were suspended
        if self._session_name is None:
            self._session_name = session.name
            logger.debug(f"{type(self).__name__} bound to session {session.name}")

    def _handle_session_change(self, event: SessionChangeEvent) -> None:
        if event.type is not SessionChangeType.SWITCHED:
            return

        self._clear()
        self._session_name = event.active_session.name
        logger.debug(f"{type(self).__name__} cleared for session {event.active_session.name}")

    @abstractmethod
    def _clear(self) -> None:
        """Drop every cached entry."""

    def detach(self) -> None:
        """Stop listening for session changes and drop cached entries."""
        if self._detached:
            return
        self._detached = True
        self._session_provider.remove_session_listener(self._handle_session_change)
        self._clear()
        self._session_name = None

    async def close(self) -> None:
        """Detach from the session provider; later calls raise ``RuntimeError``."""
        if self._closed:
            return
        self.detach()
        self._closed = True
