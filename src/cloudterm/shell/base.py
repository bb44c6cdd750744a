"""Abstract base class for remote interactive shells.

The bridge only talks to this interface: a duplex text stream with a
resize control. The SSH implementation can be swapped for a fake in
tests, or for another transport, without touching the bridge.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from cloudterm.domain.models import SSHCredentials

logger = logging.getLogger(__name__)


class ShellSession(ABC):
    """One interactive shell on one remote address.

    Lifecycle: ``connect()`` -> ``open_terminal()`` -> ``read()``/``write()``
    /``resize()`` while active -> ``close()``.

    Example usage::

        shell = SSHShellSession("203.0.113.5", credentials)
        await shell.connect()
        await shell.open_terminal("xterm-256color", cols=80, rows=30)
        await shell.write("ls\\n")
        async for chunk in shell.read():
            print(chunk, end="")
        await shell.close()
    """

    def __init__(self, address: str, credentials: SSHCredentials) -> None:
        self._address = address
        self._credentials = credentials

    @property
    def address(self) -> str:
        return self._address

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True once the terminal is open and until the shell closes."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Establish and authenticate the transport.

        Raises:
            ShellError: If the host is unreachable, the handshake times
                out, or the key is rejected. The cause is chained.
        """
        ...

    @abstractmethod
    async def open_terminal(self, term_type: str, cols: int, rows: int) -> None:
        """Allocate a pseudo-terminal and start an interactive shell.

        On failure the transport is torn down before raising.

        Raises:
            ShellError: If the terminal cannot be allocated.
        """
        ...

    @abstractmethod
    def read(self) -> AsyncIterator[str]:
        """Iterate over output chunks as the remote shell emits them.

        Iteration ends when the remote shell exits or the session is
        closed locally.

        Raises:
            ShellError: If the transport fails mid-stream.
        """
        ...

    @abstractmethod
    async def write(self, data: str) -> None:
        """Deliver input to the remote shell.

        Raises:
            ClosedError: If the terminal is not open or already closed.
        """
        ...

    @abstractmethod
    def resize(self, cols: int, rows: int) -> None:
        """Change the remote terminal geometry.

        Ignored before the terminal is open and after close.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Tear down the shell and transport. Idempotent, never raises."""
        ...


class ShellError(Exception):
    """Raised when the shell transport or terminal negotiation fails."""

    def __init__(self, message: str, address: str = "") -> None:
        super().__init__(message)
        self.address = address


class ClosedError(Exception):
    """Raised when an operation is attempted on a closed connection."""
