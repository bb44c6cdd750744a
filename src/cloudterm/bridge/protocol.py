"""Parsing of JSON messages sent by the browser terminal."""

from __future__ import annotations

import json

from pydantic import TypeAdapter, ValidationError

from cloudterm.domain.models import CLIENT_MESSAGE_TYPES, ClientMessage

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str) -> ClientMessage | None:
    """Decode one client frame.

    Returns:
        The typed message, or None for well-formed JSON objects whose
        ``type`` the bridge does not handle.

    Raises:
        ProtocolError: If the frame is not a JSON object, or a known
            message type carries invalid fields.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(payload).__name__}")
    if payload.get("type") not in CLIENT_MESSAGE_TYPES:
        return None

    try:
        return _client_message_adapter.validate_python(payload)
    except ValidationError as e:
        raise ProtocolError(
            f"Invalid {payload['type']} message: {e.error_count()} validation error(s)"
        ) from e


class ProtocolError(Exception):
    """Raised when a client frame cannot be decoded."""
