"""Core domain models for the cloudterm system.

These models represent the data flowing through a bridge session:
instance metadata from the resolver, the credentials used to open a
shell, the JSON messages exchanged with the browser, and the
diagnostic view of a live session.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    """Lifecycle state of one bridge session."""

    RESOLVING_ADDRESS = "resolving_address"
    CONNECTING = "connecting"
    SHELL_NEGOTIATING = "shell_negotiating"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.CLOSED, SessionState.FAILED)


RUNNING_STATE = "running"


# ---------------------------------------------------------------------------
# Instance Metadata Models
# ---------------------------------------------------------------------------


class InstanceRecord(BaseModel):
    """Raw metadata for one instance, as reported by the metadata backend."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    state: str = Field(description="Lifecycle state name (e.g. 'running', 'stopped')")
    public_ip: str | None = Field(
        default=None,
        alias="publicIp",
        description="Public address, absent until the provider assigns one",
    )


class InstanceAddress(BaseModel):
    """A connectable address for a running instance."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(description="Host or IP the shell transport connects to")
    state: str = Field(default=RUNNING_STATE)


# ---------------------------------------------------------------------------
# Shell Credentials
# ---------------------------------------------------------------------------


class SSHCredentials(BaseModel):
    """Process-wide SSH settings handed to every shell session."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(default="ec2-user")
    private_key: SecretStr = Field(default=SecretStr(""), description="PEM/OpenSSH private key text")
    passphrase: SecretStr | None = Field(default=None)
    port: int = Field(default=22, ge=1, le=65535)
    ready_timeout: float = Field(default=30.0, gt=0, description="Seconds allowed for connect and PTY setup")
    known_hosts: str | None = Field(
        default=None, description="known_hosts path; None disables host key checking"
    )


# ---------------------------------------------------------------------------
# Client -> Bridge Messages (discriminated union)
# ---------------------------------------------------------------------------


class InputMessage(BaseModel):
    """Keystrokes or pasted text for the remote shell."""

    model_config = ConfigDict(frozen=True)

    type: Literal["input"] = "input"
    data: str


class ResizeMessage(BaseModel):
    """New terminal geometry from the browser."""

    model_config = ConfigDict(frozen=True)

    type: Literal["resize"] = "resize"
    cols: int = Field(gt=0)
    rows: int = Field(gt=0)


ClientMessage = Annotated[
    Union[InputMessage, ResizeMessage],
    Field(discriminator="type"),
]

CLIENT_MESSAGE_TYPES = frozenset({"input", "resize"})


# ---------------------------------------------------------------------------
# Bridge -> Client Messages
# ---------------------------------------------------------------------------


class ConnectedMessage(BaseModel):
    type: Literal["connected"] = "connected"
    message: str


class OutputMessage(BaseModel):
    type: Literal["output"] = "output"
    data: str


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str


class ExitMessage(BaseModel):
    type: Literal["exit"] = "exit"
    message: str


ServerMessage = Union[ConnectedMessage, OutputMessage, ErrorMessage, ExitMessage]


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class SessionInfo(BaseModel):
    """Point-in-time view of a live session for health reporting."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Connection identity, unique per client connection")
    instance_id: str
    state: SessionState
    address: str | None = None
    created_at: datetime
    last_error: str | None = None
