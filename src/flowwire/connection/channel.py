# src/flowwire/connection/channel.py

from __future__ import annotations

import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..core.ports import Channel
from ..errors import ChannelClosedError, NetworkError

logger = logging.getLogger(__name__)


class WebSocketChannel:
    """Channel port over a websockets client connection."""

    def __init__(self, ws) -> None:
        self._ws = ws

    async def send(self, text: str) -> None:
        try:
            await self._ws.send(text)
        except ConnectionClosed as e:
            raise ChannelClosedError(f"WebSocket closed (code={e.code})") from e

    async def recv(self) -> str | bytes:
        try:
            return await self._ws.recv()
        except ConnectionClosed as e:
            raise ChannelClosedError(f"WebSocket closed (code={e.code})") from e

    async def close(self) -> None:
        await self._ws.close()


async def open_websocket(url: str) -> Channel:
    """Default ChannelFactory: open a websocket with keepalive pings."""
    try:
        ws = await websockets.connect(url, ping_interval=30, ping_timeout=10)
    except (OSError, asyncio.TimeoutError, WebSocketException) as e:
        raise NetworkError(f"WebSocket connect failed: {url}") from e
    logger.debug("WebSocket opened: %s", url)
    return WebSocketChannel(ws)
