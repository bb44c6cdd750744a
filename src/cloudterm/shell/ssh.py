"""SSH shell session built on asyncssh.

Connects with a private key, requests an interactive PTY and exposes
the remote shell's stdout/stdin as a text stream. Output is decoded
incrementally so multi-byte characters split across packets survive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

import asyncssh

from cloudterm.domain.models import SSHCredentials
from cloudterm.shell.base import ClosedError, ShellError, ShellSession

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 4096


class SSHShellSession(ShellSession):
    """Interactive shell over an asyncssh client connection."""

    def __init__(
        self,
        address: str,
        credentials: SSHCredentials,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        super().__init__(address, credentials)
        self._read_size = read_size
        self._conn: asyncssh.SSHClientConnection | None = None
        self._process: asyncssh.SSHClientProcess | None = None
        self._closed = False

    @property
    def is_active(self) -> bool:
        return self._process is not None and not self._closed

    async def connect(self) -> None:
        """Open the SSH transport and authenticate with the configured key."""
        if self._closed:
            raise ClosedError("Shell session is closed")

        creds = self._credentials
        client_keys = self._load_client_keys()
        try:
            self._conn = await asyncio.wait_for(
                asyncssh.connect(
                    self._address,
                    port=creds.port,
                    username=creds.username,
                    client_keys=client_keys,
                    known_hosts=creds.known_hosts,
                ),
                timeout=creds.ready_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ShellError(
                f"Timed out connecting to {self._address}:{creds.port} after {creds.ready_timeout:g}s",
                self._address,
            ) from e
        except (OSError, asyncssh.Error) as e:
            raise ShellError(str(e) or type(e).__name__, self._address) from e
        logger.info("SSH connected to %s as %s", self._address, creds.username)

    async def open_terminal(self, term_type: str, cols: int, rows: int) -> None:
        """Request a PTY and start the login shell."""
        if self._conn is None or self._closed:
            raise ClosedError("Shell transport is not connected")
        try:
            self._process = await asyncio.wait_for(
                self._conn.create_process(
                    term_type=term_type,
                    term_size=(cols, rows),
                    encoding="utf-8",
                    errors="replace",
                ),
                timeout=self._credentials.ready_timeout,
            )
        except asyncio.TimeoutError as e:
            await self.close()
            raise ShellError("Timed out waiting for a terminal", self._address) from e
        except (OSError, asyncssh.Error) as e:
            await self.close()
            raise ShellError(str(e) or type(e).__name__, self._address) from e
        logger.info("Shell opened on %s (%s, %dx%d)", self._address, term_type, cols, rows)

    async def read(self) -> AsyncIterator[str]:
        process = self._process
        if process is None:
            raise ClosedError("Shell terminal is not open")
        while True:
            try:
                chunk = await process.stdout.read(self._read_size)
            except (OSError, asyncssh.Error) as e:
                if self._closed:
                    return
                raise ShellError(str(e) or type(e).__name__, self._address) from e
            if not chunk:
                return
            yield chunk

    async def write(self, data: str) -> None:
        process = self._process
        if process is None or self._closed:
            raise ClosedError("Shell terminal is not open")
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (OSError, asyncssh.Error) as e:
            raise ClosedError(f"Failed to write to shell: {e}") from e

    def resize(self, cols: int, rows: int) -> None:
        process = self._process
        if process is None or self._closed:
            logger.debug("Ignoring resize to %dx%d, terminal not open", cols, rows)
            return
        try:
            process.change_terminal_size(cols, rows)
        except (OSError, asyncssh.Error) as e:
            logger.debug("Resize to %dx%d failed: %s", cols, rows, e)
            return
        logger.debug("Resized terminal on %s to %dx%d", self._address, cols, rows)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        process, conn = self._process, self._conn
        self._process = None
        self._conn = None

        if process is not None:
            process.close()
        if conn is not None:
            conn.close()
            try:
                await conn.wait_closed()
            except (OSError, asyncssh.Error) as e:
                logger.debug("Error while closing SSH connection: %s", e)
        logger.info("SSH connection closed for %s", self._address)

    def _load_client_keys(self) -> list[asyncssh.SSHKey]:
        key_text = self._credentials.private_key.get_secret_value()
        if not key_text:
            raise ShellError("No SSH private key configured", self._address)
        passphrase = self._credentials.passphrase
        try:
            key = asyncssh.import_private_key(
                key_text, passphrase.get_secret_value() if passphrase else None
            )
        except (asyncssh.KeyImportError, ValueError) as e:
            raise ShellError(f"Invalid SSH private key: {e}", self._address) from e
        return [key]
