"""Session Bridge module for cloudterm.

Binds one client connection to one remote shell and relays terminal
traffic between them for the lifetime of the connection.
"""

from cloudterm.bridge.bridge import SessionBridge
from cloudterm.bridge.client import ClientConnection, WebSocketClient
from cloudterm.bridge.protocol import ProtocolError, parse_client_message
from cloudterm.bridge.session import Session, SessionStateError

__all__ = [
    "ClientConnection",
    "ProtocolError",
    "Session",
    "SessionBridge",
    "SessionStateError",
    "WebSocketClient",
    "parse_client_message",
]
