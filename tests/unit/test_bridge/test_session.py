"""Tests for the per-connection Session state machine."""

from __future__ import annotations

import pytest

from conftest import FakeClient, FakeShell
from cloudterm.bridge.session import Session, SessionStateError
from cloudterm.domain.models import (
    ErrorMessage,
    InputMessage,
    ResizeMessage,
    SessionState,
    SSHCredentials,
)


@pytest.fixture
def session(client: FakeClient) -> Session:
    return Session("i-demo", client)


@pytest.fixture
def shell(credentials: SSHCredentials) -> FakeShell:
    return FakeShell("203.0.113.5", credentials)


async def _activate(session: Session, shell: FakeShell) -> None:
    session.advance(SessionState.CONNECTING)
    await shell.connect()
    session.advance(SessionState.SHELL_NEGOTIATING)
    await shell.open_terminal("xterm-256color", 80, 30)
    session.attach(shell)


class TestTransitions:
    def test_initial_state(self, session: Session) -> None:
        assert session.state is SessionState.RESOLVING_ADDRESS
        assert session.shell is None
        assert session.last_error is None
        assert session.id == "i-demo"

    def test_keys_are_unique_per_connection(self, client: FakeClient) -> None:
        assert Session("i-demo", client).key != Session("i-demo", client).key

    def test_forward_moves(self, session: Session) -> None:
        session.advance(SessionState.CONNECTING)
        session.advance(SessionState.SHELL_NEGOTIATING)
        assert session.state is SessionState.SHELL_NEGOTIATING

    def test_backward_move_rejected(self, session: Session) -> None:
        session.advance(SessionState.SHELL_NEGOTIATING)
        with pytest.raises(SessionStateError):
            session.advance(SessionState.CONNECTING)

    def test_same_state_rejected(self, session: Session) -> None:
        with pytest.raises(SessionStateError):
            session.advance(SessionState.RESOLVING_ADDRESS)

    def test_fail_from_any_live_state(self, session: Session) -> None:
        session.advance(SessionState.CONNECTING)
        error = RuntimeError("boom")
        session.fail(error)
        assert session.state is SessionState.FAILED
        assert session.last_error is error

    def test_failed_is_terminal(self, session: Session) -> None:
        session.fail(RuntimeError("boom"))
        with pytest.raises(SessionStateError):
            session.advance(SessionState.CLOSING)
        with pytest.raises(SessionStateError):
            session.fail(RuntimeError("again"))

    def test_advance_to_failed_requires_fail(self, session: Session) -> None:
        with pytest.raises(SessionStateError):
            session.advance(SessionState.FAILED)

    @pytest.mark.asyncio
    async def test_attach_activates(self, session: Session, shell: FakeShell) -> None:
        await _activate(session, shell)
        assert session.state is SessionState.ACTIVE
        assert session.shell is shell

    @pytest.mark.asyncio
    async def test_attach_twice_rejected(self, session: Session, shell: FakeShell) -> None:
        await _activate(session, shell)
        with pytest.raises(SessionStateError):
            session.attach(shell)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_dispatch_before_active_is_dropped(self, session: Session) -> None:
        await session.dispatch(InputMessage(data="ls\n"))
        await session.dispatch(ResizeMessage(cols=120, rows=40))
        assert session.state is SessionState.RESOLVING_ADDRESS

    @pytest.mark.asyncio
    async def test_dispatch_input_and_resize(self, session: Session, shell: FakeShell) -> None:
        await _activate(session, shell)
        await session.dispatch(InputMessage(data="ls\n"))
        await session.dispatch(ResizeMessage(cols=120, rows=40))
        assert shell.writes == ["ls\n"]
        assert shell.resizes == [(120, 40)]

    @pytest.mark.asyncio
    async def test_dispatch_after_shell_closed_is_dropped(self, session: Session, shell: FakeShell) -> None:
        await _activate(session, shell)
        await shell.close()
        await session.dispatch(InputMessage(data="ls\n"))
        assert shell.writes == []


class TestClose:
    @pytest.mark.asyncio
    async def test_close_releases_both_once(
        self, session: Session, shell: FakeShell, client: FakeClient
    ) -> None:
        await _activate(session, shell)

        await session.close()
        await session.close()

        assert session.state is SessionState.CLOSED
        assert session.shell is None
        assert shell.close_calls == 1
        assert client.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_keeps_failed_state(self, session: Session, client: FakeClient) -> None:
        session.fail(RuntimeError("boom"))
        await session.close()
        assert session.state is SessionState.FAILED
        assert client.closed

    @pytest.mark.asyncio
    async def test_send_after_close_is_noop(self, session: Session, client: FakeClient) -> None:
        await session.close()
        assert await session.send(ErrorMessage(message="late")) is False
        assert client.sent == []

    @pytest.mark.asyncio
    async def test_send_after_fail_is_noop(self, session: Session, client: FakeClient) -> None:
        session.fail(RuntimeError("boom"))
        assert await session.send(ErrorMessage(message="late")) is False
        assert client.sent == []

    @pytest.mark.asyncio
    async def test_close_survives_shell_error(
        self, session: Session, shell: FakeShell, client: FakeClient
    ) -> None:
        await _activate(session, shell)

        async def broken_close() -> None:
            raise OSError("socket already gone")

        shell.close = broken_close  # type: ignore[method-assign]
        await session.close()
        assert session.state is SessionState.CLOSED
        assert client.closed

    def test_info_snapshot(self, session: Session) -> None:
        session.address = "203.0.113.5"
        session.fail(RuntimeError("Instance is stopped, not running"))
        info = session.info()
        assert info.instance_id == "i-demo"
        assert info.key == session.key
        assert info.state is SessionState.FAILED
        assert info.address == "203.0.113.5"
        assert info.last_error == "Instance is stopped, not running"
