"""Registry of live bridge sessions.

Sessions are keyed by connection identity, not by instance id: two
browser tabs on the same instance get two independent shells and two
entries here. All mutations happen on the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from cloudterm.domain.models import SessionInfo

if TYPE_CHECKING:
    from cloudterm.bridge.session import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Tracks live sessions for diagnostics and orderly shutdown."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: object) -> bool:
        key = getattr(session, "key", None)
        return key is not None and self._sessions.get(key) is session

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def register(self, session: Session) -> None:
        if session.key in self._sessions:
            raise ValueError(f"Session {session.key} is already registered")
        self._sessions[session.key] = session
        logger.debug("Registered session %s for %s (%d live)", session.key, session.id, len(self._sessions))

    def unregister(self, session: Session) -> bool:
        """Remove a session. Returns False if it was not registered."""
        if self._sessions.get(session.key) is not session:
            return False
        del self._sessions[session.key]
        logger.debug("Unregistered session %s for %s (%d live)", session.key, session.id, len(self._sessions))
        return True

    def get(self, key: str) -> Session | None:
        return self._sessions.get(key)

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def for_instance(self, instance_id: str) -> list[Session]:
        return [s for s in self._sessions.values() if s.id == instance_id]

    def snapshot(self) -> list[SessionInfo]:
        return [s.info() for s in self._sessions.values()]

    async def close_all(self) -> None:
        """Tear down every live session (used at shutdown)."""
        sessions = self.sessions()
        if not sessions:
            return
        logger.info("Closing %d live session(s)", len(sessions))
        await asyncio.gather(*(s.close() for s in sessions))
