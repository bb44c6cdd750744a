"""Shared test fixtures for the cloudterm test suite.

Provides in-memory stand-ins for the two connections a session owns:
a fake browser client and a fake remote shell, plus a bridge wired to a
static resolver.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from cloudterm.bridge.bridge import SessionBridge
from cloudterm.bridge.client import ClientConnection
from cloudterm.domain.models import InstanceRecord, ServerMessage, SSHCredentials
from cloudterm.registry import SessionRegistry
from cloudterm.resolver.static import StaticAddressResolver
from cloudterm.shell.base import ClosedError, ShellSession

WAIT = 2.0


# ---------------------------------------------------------------------------
# Fake connections
# ---------------------------------------------------------------------------


class FakeClient(ClientConnection):
    """Browser-side connection driven from the test."""

    def __init__(self) -> None:
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._outbox: asyncio.Queue[dict] = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False
        self.close_calls = 0

    @property
    def is_open(self) -> bool:
        return not self.closed

    async def receive_text(self) -> str | None:
        if self.closed:
            return None
        return await self._inbox.get()

    async def send_message(self, message: ServerMessage) -> bool:
        if self.closed:
            return False
        payload = message.model_dump()
        self.sent.append(payload)
        self._outbox.put_nowait(payload)
        return True

    async def close(self) -> None:
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)

    # Test controls

    def feed(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def disconnect(self) -> None:
        """Simulate the browser going away."""
        self.closed = True
        self._inbox.put_nowait(None)

    async def next_message(self) -> dict:
        return await asyncio.wait_for(self._outbox.get(), WAIT)

    async def settle(self) -> None:
        """Wait until the bridge has consumed every fed frame."""
        while not self._inbox.empty():
            await asyncio.sleep(0)
        await asyncio.sleep(0)


class FakeShell(ShellSession):
    """Remote shell whose output and failures are scripted by the test."""

    def __init__(
        self,
        address: str,
        credentials: SSHCredentials,
        connect_error: Exception | None = None,
        terminal_error: Exception | None = None,
        connect_gate: asyncio.Event | None = None,
        echo: bool = False,
    ) -> None:
        super().__init__(address, credentials)
        self._connect_error = connect_error
        self._terminal_error = terminal_error
        self._connect_gate = connect_gate
        self._echo = echo
        self._output: asyncio.Queue[str | Exception | None] = asyncio.Queue()
        self.inputs: asyncio.Queue[str] = asyncio.Queue()
        self.writes: list[str] = []
        self.resizes: list[tuple[int, int]] = []
        self.terminal: tuple[str, int, int] | None = None
        self.connected = False
        self.closed = False
        self.close_calls = 0

    @property
    def is_active(self) -> bool:
        return self.terminal is not None and not self.closed

    async def connect(self) -> None:
        if self._connect_gate is not None:
            await self._connect_gate.wait()
        if self._connect_error is not None:
            raise self._connect_error
        self.connected = True

    async def open_terminal(self, term_type: str, cols: int, rows: int) -> None:
        if self._terminal_error is not None:
            raise self._terminal_error
        self.terminal = (term_type, cols, rows)

    async def read(self) -> AsyncIterator[str]:
        while True:
            item = await self._output.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def write(self, data: str) -> None:
        if not self.is_active:
            raise ClosedError("Shell terminal is not open")
        self.writes.append(data)
        self.inputs.put_nowait(data)
        if self._echo:
            self._output.put_nowait(data)

    def resize(self, cols: int, rows: int) -> None:
        if not self.is_active:
            return
        self.resizes.append((cols, rows))

    async def close(self) -> None:
        self.close_calls += 1
        if self.closed:
            return
        self.closed = True
        self._output.put_nowait(None)

    # Test controls

    def emit(self, chunk: str) -> None:
        self._output.put_nowait(chunk)

    def exit(self) -> None:
        """Simulate the remote shell ending normally."""
        self._output.put_nowait(None)

    def crash(self, error: Exception) -> None:
        self._output.put_nowait(error)

    async def next_input(self) -> str:
        return await asyncio.wait_for(self.inputs.get(), WAIT)


class ShellFactory:
    """Builds FakeShells and remembers them."""

    def __init__(self, **options: object) -> None:
        self.options = options
        self.created: list[FakeShell] = []

    def __call__(self, address: str, credentials: SSHCredentials) -> FakeShell:
        shell = FakeShell(address, credentials, **self.options)  # type: ignore[arg-type]
        self.created.append(shell)
        return shell


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def credentials() -> SSHCredentials:
    return SSHCredentials(username="ec2-user", private_key="not-a-real-key", ready_timeout=5.0)


@pytest.fixture
def instances() -> dict[str, InstanceRecord]:
    return {
        "i-demo": InstanceRecord(state="running", public_ip="203.0.113.5"),
        "i-stopped": InstanceRecord(state="stopped"),
        "i-pending-ip": InstanceRecord(state="running"),
    }


@pytest.fixture
def resolver(instances: dict[str, InstanceRecord]) -> StaticAddressResolver:
    return StaticAddressResolver(instances)


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def shell_factory() -> ShellFactory:
    return ShellFactory()


@pytest.fixture
def bridge(
    resolver: StaticAddressResolver,
    credentials: SSHCredentials,
    registry: SessionRegistry,
    shell_factory: ShellFactory,
) -> SessionBridge:
    return SessionBridge(
        resolver=resolver,
        credentials=credentials,
        registry=registry,
        shell_factory=shell_factory,
    )


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()
