"""Per-connection session state.

A :class:`Session` binds one client connection to at most one shell and
tracks the forward-only lifecycle between them. It owns both handles and
releases them exactly once.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from cloudterm.bridge.client import ClientConnection
from cloudterm.domain.models import (
    ClientMessage,
    InputMessage,
    ResizeMessage,
    ServerMessage,
    SessionInfo,
    SessionState,
)
from cloudterm.shell.base import ClosedError, ShellSession

logger = logging.getLogger(__name__)

_ORDER = {
    SessionState.RESOLVING_ADDRESS: 0,
    SessionState.CONNECTING: 1,
    SessionState.SHELL_NEGOTIATING: 2,
    SessionState.ACTIVE: 3,
    SessionState.CLOSING: 4,
    SessionState.CLOSED: 5,
}


class Session:
    """One client connection and the shell bound to it."""

    def __init__(self, instance_id: str, client: ClientConnection) -> None:
        self.id = instance_id
        self.key = uuid.uuid4().hex
        self.client = client
        self.shell: ShellSession | None = None
        self.state = SessionState.RESOLVING_ADDRESS
        self.address: str | None = None
        self.last_error: Exception | None = None
        self.created_at = datetime.now()
        self._released = False

    @property
    def is_released(self) -> bool:
        return self._released

    def advance(self, state: SessionState) -> None:
        """Move forward to ``state``.

        Raises:
            SessionStateError: On a backward move, a move out of a
                terminal state, or a move to FAILED (use :meth:`fail`).
        """
        if (
            self.state.is_terminal
            or state is SessionState.FAILED
            or _ORDER[state] <= _ORDER[self.state]
        ):
            raise SessionStateError(f"Cannot move session {self.key} from {self.state.value} to {state.value}")
        logger.debug("Session %s (%s): %s -> %s", self.key, self.id, self.state.value, state.value)
        self.state = state

    def fail(self, error: Exception) -> None:
        if self.state.is_terminal:
            raise SessionStateError(f"Session {self.key} is already {self.state.value}")
        logger.debug("Session %s (%s): %s -> failed (%s)", self.key, self.id, self.state.value, error)
        self.state = SessionState.FAILED
        self.last_error = error

    def attach(self, shell: ShellSession) -> None:
        """Bind the negotiated shell and enter ACTIVE."""
        if self.shell is not None:
            raise SessionStateError(f"Session {self.key} already has a shell")
        self.advance(SessionState.ACTIVE)
        self.shell = shell

    async def dispatch(self, message: ClientMessage) -> None:
        """Apply a client message to the shell; dropped unless ACTIVE."""
        shell = self.shell
        if shell is None or self.state is not SessionState.ACTIVE:
            logger.debug("Dropping %s message for %s in state %s", message.type, self.id, self.state.value)
            return
        if isinstance(message, InputMessage):
            try:
                await shell.write(message.data)
            except ClosedError as e:
                logger.debug("Input for %s dropped: %s", self.id, e)
        elif isinstance(message, ResizeMessage):
            shell.resize(message.cols, message.rows)

    async def send(self, message: ServerMessage) -> bool:
        """Send to the client; a no-op once released or FAILED."""
        if self._released or self.state is SessionState.FAILED:
            return False
        return await self.client.send_message(message)

    async def close(self) -> None:
        """Release the shell and the client connection exactly once.

        A FAILED session stays FAILED; any other session ends CLOSED.
        """
        if self._released:
            return
        self._released = True
        if not self.state.is_terminal:
            self.advance(SessionState.CLOSING)

        shell, self.shell = self.shell, None
        try:
            if shell is not None:
                await shell.close()
        except Exception:
            logger.exception("Error closing shell for %s", self.id)
        finally:
            try:
                await self.client.close()
            except Exception:
                logger.exception("Error closing client connection for %s", self.id)

        if self.state is SessionState.CLOSING:
            self.advance(SessionState.CLOSED)
        logger.info("Session %s for %s ended (%s)", self.key, self.id, self.state.value)

    def info(self) -> SessionInfo:
        return SessionInfo(
            key=self.key,
            instance_id=self.id,
            state=self.state,
            address=self.address,
            created_at=self.created_at,
            last_error=str(self.last_error) if self.last_error is not None else None,
        )


class SessionStateError(RuntimeError):
    """Raised on an illegal session state transition."""
