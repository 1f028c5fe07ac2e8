# src/flowwire/connection/persistent_connection.py

"""
Persistent duplex connection with automatic reconnection and event fan-out.

A session is one background task that opens the channel, reads messages until
the channel closes, and reconnects with exponential backoff:

    delay = reconnect_delay * 2 ** reconnect_attempts

After max_reconnect_attempts consecutive failures it stops silently (the
"disconnected" event for the last close has already fired). disconnect() ends
the session, so a deliberate disconnect never reconnects.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from enum import StrEnum
from typing import Any, Callable

from websockets.exceptions import ConnectionClosed

from ..core.ports import Channel, ChannelFactory
from ..errors import ChannelClosedError, ConfigurationError
from .channel import open_websocket

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Any]


class ConnectionEvent(StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    MESSAGE = "message"


_LIFECYCLE_EVENTS = frozenset(ConnectionEvent) - {ConnectionEvent.MESSAGE}


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


async def _close_quietly(channel: Channel) -> None:
    try:
        await channel.close()
    except Exception:
        logger.debug("Channel close failed.", exc_info=True)


def _settle(fut: asyncio.Future[bool], value: bool) -> None:
    if not fut.done():
        fut.set_result(value)


class PersistentConnection:
    def __init__(
            self,
            channel_factory: ChannelFactory | None = None,
            *,
            max_reconnect_attempts: int = 5,
            reconnect_delay: float = 1.0,
    ) -> None:
        if int(max_reconnect_attempts) < 0:
            raise ConfigurationError(f"max_reconnect_attempts must be >= 0, got {max_reconnect_attempts!r}")
        if float(reconnect_delay) < 0:
            raise ConfigurationError(f"reconnect_delay must be >= 0, got {reconnect_delay!r}")

        self.max_reconnect_attempts = int(max_reconnect_attempts)
        self.reconnect_delay = float(reconnect_delay)
        self._factory: ChannelFactory = channel_factory or open_websocket

        self.url: str | None = None
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0

        self._channel: Channel | None = None
        self._runner: asyncio.Task[None] | None = None
        self._session: object | None = None
        self._handlers: dict[str, list[EventHandler]] = {}

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self._channel is not None

    # ---- lifecycle ----

    async def connect(self, url: str) -> bool:
        """
        Start a session for `url`, replacing any existing one.

        Returns whether the first open succeeded. On failure the session keeps
        reconnecting in the background until the attempt budget is spent.
        """
        if self._session is not None or self._channel is not None:
            await self.disconnect()

        loop = asyncio.get_running_loop()
        session = object()
        first_open: asyncio.Future[bool] = loop.create_future()

        self.url = url
        self._session = session
        self.reconnect_attempts = 0
        self.state = ConnectionState.CONNECTING
        self._runner = loop.create_task(self._run_session(session, url, first_open), name=f"connection:{url}")

        return await first_open

    async def disconnect(self) -> None:
        was_connected = self.connected

        self.url = None
        self._session = None
        self.state = ConnectionState.DISCONNECTED

        runner, self._runner = self._runner, None
        channel, self._channel = self._channel, None

        if runner is not None and runner is not asyncio.current_task():
            runner.cancel()
            await asyncio.wait({runner})

        if channel is not None:
            await _close_quietly(channel)

        if was_connected:
            logger.info("Disconnected.")
            await self.emit(ConnectionEvent.DISCONNECTED, None)

    async def send(self, data: Any) -> bool:
        """Send one message; False (nothing sent) when not connected."""
        channel = self._channel
        if channel is None or self.state is not ConnectionState.CONNECTED:
            logger.warning("Connection not open; message dropped.")
            return False

        message = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
        try:
            await channel.send(message)
        except Exception as e:
            logger.warning("Send failed: %r", e)
            return False
        return True

    # ---- subscriptions ----

    def on(self, event: ConnectionEvent | str, handler: EventHandler) -> None:
        self._handlers.setdefault(str(event), []).append(handler)

    def off(self, event: ConnectionEvent | str, handler: EventHandler) -> None:
        handlers = self._handlers.get(str(event))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def on_connected(self, handler: EventHandler) -> None:
        self.on(ConnectionEvent.CONNECTED, handler)

    def on_disconnected(self, handler: EventHandler) -> None:
        self.on(ConnectionEvent.DISCONNECTED, handler)

    def on_error(self, handler: EventHandler) -> None:
        self.on(ConnectionEvent.ERROR, handler)

    def on_message(self, handler: EventHandler) -> None:
        self.on(ConnectionEvent.MESSAGE, handler)

    def listener_count(self, event: ConnectionEvent | str) -> int:
        return len(self._handlers.get(str(event), ()))

    async def emit(self, event: ConnectionEvent | str, data: Any = None) -> None:
        # Snapshot: handlers may subscribe/unsubscribe while being called.
        for handler in list(self._handlers.get(str(event), ())):
            try:
                out = handler(data)
                if inspect.isawaitable(out):
                    await out
            except Exception:
                logger.exception("Handler for %r failed", str(event))

    # ---- session runner ----

    async def _run_session(self, session: object, url: str, first_open: asyncio.Future[bool]) -> None:
        try:
            while self._session is session:
                await self._open_and_read(session, url, first_open)

                if self._session is not session:
                    return

                if self.reconnect_attempts >= self.max_reconnect_attempts:
                    logger.warning("Giving up on %s after %d reconnect attempt(s)", url, self.reconnect_attempts)
                    self.state = ConnectionState.DISCONNECTED
                    self._session = None
                    return

                delay = self.reconnect_delay * 2 ** self.reconnect_attempts
                self.reconnect_attempts += 1
                self.state = ConnectionState.RECONNECTING
                logger.info("Reconnect attempt %d in %.2fs...", self.reconnect_attempts, delay)
                await asyncio.sleep(delay)
        finally:
            _settle(first_open, False)
            if self._runner is asyncio.current_task():
                self._runner = None

    async def _open_and_read(self, session: object, url: str, first_open: asyncio.Future[bool]) -> None:
        try:
            channel = await self._factory(url)
        except Exception as e:
            logger.warning("Connection to %s failed: %r", url, e)
            _settle(first_open, False)
            await self.emit(ConnectionEvent.ERROR, e)
            await self.emit(ConnectionEvent.DISCONNECTED, None)
            return

        if self._session is not session:
            await _close_quietly(channel)
            return

        self._channel = channel
        self.state = ConnectionState.CONNECTED
        self.reconnect_attempts = 0
        logger.info("Connected to %s", url)
        _settle(first_open, True)
        await self.emit(ConnectionEvent.CONNECTED, None)

        try:
            while True:
                raw = await channel.recv()
                await self._dispatch_inbound(raw)
        except (ChannelClosedError, ConnectionClosed) as e:
            logger.info("Connection closed: %s", e)
        except Exception as e:
            logger.warning("Connection error: %r", e)
            await self.emit(ConnectionEvent.ERROR, e)

        if self._channel is not channel:
            # disconnect() already took the channel down and reported it.
            return

        self._channel = None
        self.state = ConnectionState.DISCONNECTED
        await _close_quietly(channel)
        await self.emit(ConnectionEvent.DISCONNECTED, None)

    async def _dispatch_inbound(self, raw: str | bytes) -> None:
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else raw
        try:
            data = json.loads(text)
        except ValueError:
            await self.emit(ConnectionEvent.MESSAGE, text)
            return

        event = data.get("type") if isinstance(data, dict) else None
        # Lifecycle event names are reserved for the connection itself.
        if isinstance(event, str) and event and event not in _LIFECYCLE_EVENTS:
            await self.emit(event, data)
        else:
            await self.emit(ConnectionEvent.MESSAGE, data)
