# src/flowwire/core/ports.py

"""
Ports (interfaces) used by the core.

The queue, poller and connection depend on Protocols instead of concrete
implementations. This keeps httpx/websockets swappable and makes testing easier.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol

if TYPE_CHECKING:
    from ..transport.models import RequestDescriptor

StatusResult = Any
# Usually a dict like {"completed": bool, "failed": bool, "error": str | None, ...payload}.

StatusCheck = Callable[[], Awaitable[StatusResult]]
Operation = Callable[[], Awaitable[Any]]


class Transport(Protocol):
    """
    One request/response exchange, no retries and no concurrency control.

    Fails with NetworkError, HttpError or ProtocolError.
    """

    async def execute(self, descriptor: RequestDescriptor) -> Any: ...


class StatusTransport(Transport, Protocol):
    """Transport that also knows the long-running task status endpoints."""

    async def check_task_status(self, task_id: str, provider: str = "runninghub") -> Any: ...
    async def get_execution_status(self, execution_id: str) -> Any: ...


class Channel(Protocol):
    """
    A live duplex text channel (a websocket in production).

    recv() raises ChannelClosedError (or the library's own closed error)
    once the peer goes away.
    """

    async def send(self, text: str) -> None: ...
    async def recv(self) -> str | bytes: ...
    async def close(self) -> None: ...


ChannelFactory = Callable[[str], Awaitable[Channel]]
