"""Duplex frame transports a call session can run over."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, Union

from starlette.websockets import WebSocketDisconnect, WebSocketState

from agents.errors import TransportClosed

if TYPE_CHECKING:  # pragma: no cover
    from fastapi import WebSocket

LOGGER = logging.getLogger(__name__)

Frame = Union[bytes, str]


class CallTransport(Protocol):
    """One bidirectional connection carrying binary and text frames."""

    async def receive(self) -> Frame:
        """Return the next frame, or raise `TransportClosed` once the peer is gone."""

    async def send_bytes(self, data: bytes) -> None:
        ...

    async def send_text(self, text: str) -> None:
        ...

    async def close(self) -> None:
        ...


class WebSocketTransport:
    """Adapter from a FastAPI/Starlette WebSocket to `CallTransport`."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket

    async def receive(self) -> Frame:
        if self._ws.client_state == WebSocketState.DISCONNECTED:
            raise TransportClosed()
        try:
            message = await self._ws.receive()
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise TransportClosed() from exc

        if message["type"] == "websocket.disconnect":
            raise TransportClosed()
        if message.get("bytes") is not None:
            return message["bytes"]
        return message.get("text") or ""

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._ws.send_bytes(data)
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise TransportClosed() from exc

    async def send_text(self, text: str) -> None:
        try:
            await self._ws.send_text(text)
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise TransportClosed() from exc

    async def close(self) -> None:
        if self._ws.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self._ws.close()
        except RuntimeError:
            LOGGER.debug("WebSocket already closed")
