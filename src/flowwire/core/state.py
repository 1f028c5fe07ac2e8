# src/flowwire/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..connection.persistent_connection import PersistentConnection
from ..dispatch.request_queue import RequestQueue
from ..polling.poll_models import FAILED_STATUSES, default_failure_message
from ..polling.poller import Poller
from .ports import StatusCheck, StatusTransport

logger = logging.getLogger(__name__)

# Executions may also end by being cancelled/aborted on the server.
EXECUTION_FAILED_STATUSES = FAILED_STATUSES | {"cancelled", "aborted"}


def _execution_failed(result: Any) -> bool:
    if isinstance(result, dict):
        if result.get("failed"):
            return True
        status = result.get("status")
        return isinstance(status, str) and status.lower() in EXECUTION_FAILED_STATUSES
    return bool(getattr(result, "failed", False))


def _execution_failure_message(result: Any) -> str:
    message = default_failure_message(result)
    return "Execution failed" if message == "Task failed" else message


@dataclass
class CommLayer:
    """
    One explicitly constructed handle for the whole communication layer.

    Pass it down instead of reaching for module globals; aclose() is the
    teardown for everything it owns.
    """

    settings: object
    transport: StatusTransport
    queue: RequestQueue
    poller: Poller
    connection: PersistentConnection

    def queued_check(self, fetch: Callable[[], Awaitable[Any]], priority: int = 0) -> StatusCheck:
        """Wrap a status fetch so every poll tick goes through the request queue."""

        async def _check() -> Any:
            return await self.queue.enqueue(fetch, priority)

        return _check

    def track_task(self, task_id: str, *, provider: str = "runninghub", priority: int = 0, **poll_options: Any) -> str:
        check = self.queued_check(lambda: self.transport.check_task_status(task_id, provider), priority)
        return self.poller.start(task_id, check, **poll_options)

    def track_execution(self, execution_id: str, *, priority: int = 0, **poll_options: Any) -> str:
        check = self.queued_check(lambda: self.transport.get_execution_status(execution_id), priority)
        poll_options.setdefault("is_failed", _execution_failed)
        poll_options.setdefault("failure_message", _execution_failure_message)
        return self.poller.start(execution_id, check, **poll_options)

    async def wait_for_task(self, task_id: str, *, provider: str = "runninghub", priority: int = 0, **poll_options: Any) -> Any:
        check = self.queued_check(lambda: self.transport.check_task_status(task_id, provider), priority)
        return await self.poller.watch(task_id, check, **poll_options)

    async def wait_for_execution(self, execution_id: str, *, priority: int = 0, **poll_options: Any) -> Any:
        check = self.queued_check(lambda: self.transport.get_execution_status(execution_id), priority)
        poll_options.setdefault("is_failed", _execution_failed)
        poll_options.setdefault("failure_message", _execution_failure_message)
        return await self.poller.watch(execution_id, check, **poll_options)

    async def aclose(self) -> None:
        """Stop polls, drop queued work, disconnect, close the transport."""
        self.poller.stop_all()
        self.queue.clear()
        await self.connection.disconnect()

        close = getattr(self.transport, "aclose", None)
        if callable(close):
            try:
                await close()
            except Exception:
                logger.debug("Transport close failed.", exc_info=True)
