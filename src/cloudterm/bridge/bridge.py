"""Session bridge orchestrator.

Drives one client connection through address resolution, SSH connect
and PTY negotiation, then relays messages in both directions until
either side ends:

    client frames  --parse-->  input/resize  -->  shell.write / shell.resize
    shell output   --------->  {"type": "output", "data": ...}  --> client

Exactly one terminal message (``error`` or ``exit``) reaches the client
before it is closed, unless the client went away first.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from cloudterm.bridge.client import ClientConnection
from cloudterm.bridge.protocol import ProtocolError, parse_client_message
from cloudterm.bridge.session import Session
from cloudterm.config.settings import TerminalConfig
from cloudterm.domain.models import (
    ConnectedMessage,
    ErrorMessage,
    ExitMessage,
    OutputMessage,
    SessionState,
    SSHCredentials,
)
from cloudterm.registry import SessionRegistry
from cloudterm.resolver.base import AddressResolver, ResolverError
from cloudterm.shell.base import ShellError, ShellSession
from cloudterm.shell.ssh import SSHShellSession

logger = logging.getLogger(__name__)

ShellFactory = Callable[[str, SSHCredentials], ShellSession]

MISSING_INSTANCE_MESSAGE = "Missing instanceId parameter"
CONNECTED_MESSAGE = "SSH connection established"
EXIT_MESSAGE = "Shell closed"
LOOKUP_ERROR_MESSAGE = "Instance lookup failed"


class SessionBridge:
    """Relays one browser terminal to one remote shell per connection."""

    def __init__(
        self,
        resolver: AddressResolver,
        credentials: SSHCredentials,
        registry: SessionRegistry | None = None,
        shell_factory: ShellFactory | None = None,
        terminal: TerminalConfig | None = None,
    ) -> None:
        self._resolver = resolver
        self._credentials = credentials
        self._registry = registry if registry is not None else SessionRegistry()
        self._shell_factory = shell_factory or SSHShellSession
        self._terminal = terminal or TerminalConfig()

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    async def serve(self, client: ClientConnection, instance_id: str | None) -> Session | None:
        """Run a session for ``client`` until either side ends.

        Returns:
            The finished session, or None if the connection was rejected
            before a session was created.
        """
        if not instance_id:
            logger.warning("Rejecting client connection without an instance id")
            await client.send_message(ErrorMessage(message=MISSING_INSTANCE_MESSAGE))
            await client.close()
            return None

        session = Session(instance_id, client)
        self._registry.register(session)
        logger.info("WebSocket connection request for instance: %s", instance_id)

        inbound = asyncio.create_task(self._pump_client(session), name=f"client-{session.key}")
        setup = asyncio.create_task(self._establish(session), name=f"setup-{session.key}")
        tasks = [inbound, setup]
        try:
            await asyncio.wait({inbound, setup}, return_when=asyncio.FIRST_COMPLETED)
            if not setup.done():
                error = inbound.exception()
                if error is not None:
                    raise error
                logger.info("Client for %s left during setup (%s)", instance_id, session.state.value)
                return session
            if not setup.result():
                return session

            outbound = asyncio.create_task(self._pump_shell(session), name=f"shell-{session.key}")
            tasks.append(outbound)
            await asyncio.wait({inbound, outbound}, return_when=asyncio.FIRST_COMPLETED)
            await self._finish(session, inbound, outbound)
            return session
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await session.close()
            self._registry.unregister(session)

    async def _establish(self, session: Session) -> bool:
        """Resolve, connect and negotiate. Returns False after a failure."""
        try:
            target = await self._resolver.resolve(session.id)
        except ResolverError as e:
            logger.warning("Cannot resolve instance %s: %s", session.id, e)
            await self._fail(session, e, str(e))
            return False
        except Exception as e:
            logger.exception("Unexpected error resolving instance %s", session.id)
            await self._fail(session, e, f"{LOOKUP_ERROR_MESSAGE}: {e}")
            return False

        logger.info("Instance %s found at IP: %s", session.id, target.address)
        session.address = target.address
        session.advance(SessionState.CONNECTING)

        shell = self._shell_factory(target.address, self._credentials)
        try:
            logger.info("Connecting to SSH at %s...", target.address)
            await shell.connect()
            session.advance(SessionState.SHELL_NEGOTIATING)
            term = self._terminal
            await shell.open_terminal(term.term_type, term.cols, term.rows)
        except asyncio.CancelledError:
            await shell.close()
            raise
        except Exception as e:
            await shell.close()
            prefix = "SSH error" if session.state is SessionState.CONNECTING else "Shell error"
            if isinstance(e, ShellError):
                logger.error("%s for %s: %s", prefix, session.id, e)
            else:
                logger.exception("Unexpected %s for %s", prefix, session.id)
            await self._fail(session, e, f"{prefix}: {e}")
            return False

        session.attach(shell)
        logger.info("Shell opened for %s", session.id)
        await session.send(ConnectedMessage(message=CONNECTED_MESSAGE))
        return True

    async def _pump_client(self, session: Session) -> None:
        """Forward client frames to the shell, in arrival order."""
        while True:
            raw = await session.client.receive_text()
            if raw is None:
                return
            try:
                message = parse_client_message(raw)
            except ProtocolError as e:
                logger.warning("Dropping malformed message from %s client: %s", session.id, e)
                continue
            if message is None:
                logger.debug("Ignoring unsupported message from %s client", session.id)
                continue
            await session.dispatch(message)

    async def _pump_shell(self, session: Session) -> None:
        """Forward shell output to the client, one message per chunk."""
        shell = session.shell
        if shell is None:
            return
        async for chunk in shell.read():
            await session.send(OutputMessage(data=chunk))

    async def _finish(
        self, session: Session, inbound: asyncio.Task[None], outbound: asyncio.Task[None]
    ) -> None:
        if outbound.done():
            error = outbound.exception()
            if error is None:
                logger.info("Shell closed for %s", session.id)
                await session.send(ExitMessage(message=EXIT_MESSAGE))
            elif isinstance(error, ShellError):
                logger.error("SSH error for %s: %s", session.id, error)
                await self._fail(session, error, f"SSH error: {error}")
            else:
                raise error
            return

        error = inbound.exception()
        if error is not None:
            raise error
        logger.info("WebSocket closed for %s", session.id)

    async def _fail(self, session: Session, error: Exception, message: str) -> None:
        await session.send(ErrorMessage(message=message))
        session.fail(error)
