"""Client-facing connection abstraction.

The bridge reads frames from and writes messages to a
:class:`ClientConnection`; the WebSocket adapter below is the only
production implementation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from cloudterm.domain.models import ServerMessage

logger = logging.getLogger(__name__)


class ClientConnection(ABC):
    """Duplex message channel to one browser client."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def receive_text(self) -> str | None:
        """Wait for the next frame.

        Returns:
            The frame as text, or None once the client is gone.
        """
        ...

    @abstractmethod
    async def send_message(self, message: ServerMessage) -> bool:
        """Send one message as JSON.

        Returns:
            False if the client is gone and nothing was sent.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call multiple times."""
        ...


class WebSocketClient(ClientConnection):
    """Adapts an accepted FastAPI/Starlette WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._websocket.application_state == WebSocketState.CONNECTED
            and self._websocket.client_state == WebSocketState.CONNECTED
        )

    async def receive_text(self) -> str | None:
        if self._closed:
            return None
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            self._closed = True
            return None
        text = message.get("text")
        if text is None:
            text = (message.get("bytes") or b"").decode("utf-8", errors="replace")
        return text

    async def send_message(self, message: ServerMessage) -> bool:
        if not self.is_open:
            return False
        try:
            await self._websocket.send_text(message.model_dump_json())
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug("Send to client failed: %s", e)
            self._closed = True
            return False
        return True

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self._websocket.close()
        except (RuntimeError, OSError) as e:
            logger.debug("WebSocket close failed: %s", e)
