# src/flowwire/dispatch/request_queue.py

"""
Priority request queue with bounded concurrency and retry/backoff.

Callers enqueue zero-argument coroutine functions and get back a future that
settles exactly once. The queue:
- keeps pending work sorted by priority (higher first, FIFO among equals),
- never runs more than max_concurrent operations at a time,
- retries transient failures with exponential backoff, re-entering them at the
  front of their priority band once the delay has elapsed,
- gives up after retry_attempts invocations with RetriesExhaustedError.

All state changes happen synchronously between awaits, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import bisect
import itertools
import logging
from typing import Any

from ..core.ports import Operation, Transport
from ..errors import CancellationError, ConfigurationError, RetriesExhaustedError, TerminalError, TransientError
from ..transport.models import RequestDescriptor
from .queue_models import QueuedRequest, QueueStatus

logger = logging.getLogger(__name__)


class RequestQueue:
    def __init__(
            self,
            max_concurrent: int = 5,
            retry_attempts: int = 3,
            retry_delay: float = 1.0,
    ) -> None:
        if int(max_concurrent) < 1:
            raise ConfigurationError(f"max_concurrent must be >= 1, got {max_concurrent!r}")
        if int(retry_attempts) < 1:
            raise ConfigurationError(f"retry_attempts must be >= 1, got {retry_attempts!r}")
        if float(retry_delay) < 0:
            raise ConfigurationError(f"retry_delay must be >= 0, got {retry_delay!r}")

        self.max_concurrent = int(max_concurrent)
        self.retry_attempts = int(retry_attempts)
        self.retry_delay = float(retry_delay)

        self._pending: list[QueuedRequest] = []
        self._running = 0
        self._paused = False

        self._fresh_seq = itertools.count()
        self._retry_seq = itertools.count(-1, -1)

        # Requests sitting out a backoff delay, with the timer that re-queues them.
        self._backoff: dict[QueuedRequest, asyncio.TimerHandle] = {}
        self._inflight: set[asyncio.Task[None]] = set()

    # ---- public API ----

    def enqueue(self, operation: Operation, priority: int = 0, *, retry: bool = True) -> asyncio.Future[Any]:
        """
        Queue an operation and return a future for its outcome.

        Must be called from inside a running event loop.
        """
        loop = asyncio.get_running_loop()
        request = QueuedRequest(
            operation=operation,
            priority=int(priority),
            seq=next(self._fresh_seq),
            future=loop.create_future(),
            retry=retry,
        )
        self._insert(request)
        self._dispatch()
        return request.future

    def submit(self, transport: Transport, descriptor: RequestDescriptor, priority: int = 0) -> asyncio.Future[Any]:
        """Queue one transport exchange; non-idempotent descriptors are never retried."""
        return self.enqueue(
            lambda: transport.execute(descriptor),
            priority,
            retry=bool(descriptor.idempotent),
        )

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._dispatch()

    def clear(self) -> int:
        """
        Reject every request that has not started yet (including ones waiting
        out a backoff) with CancellationError. In-flight work is not touched.

        Returns the number of cancelled requests.
        """
        dropped = self._pending
        self._pending = []

        for request, handle in self._backoff.items():
            handle.cancel()
            dropped.append(request)
        self._backoff.clear()

        cancelled = 0
        for request in dropped:
            if not request.future.done():
                request.future.set_exception(CancellationError())
                cancelled += 1

        if cancelled:
            logger.info("Queue cleared: %d request(s) cancelled", cancelled)
        return cancelled

    def get_status(self) -> QueueStatus:
        return QueueStatus(
            pending=len(self._pending),
            running=self._running,
            paused=self._paused,
            retrying=len(self._backoff),
        )

    @property
    def running(self) -> int:
        return self._running

    @property
    def paused(self) -> bool:
        return self._paused

    # ---- scheduling ----

    def _insert(self, request: QueuedRequest) -> None:
        bisect.insort(self._pending, request, key=lambda r: r.sort_key)

    def _dispatch(self) -> None:
        while not self._paused and self._running < self.max_concurrent and self._pending:
            request = self._pending.pop(0)
            if request.future.done():
                # Caller gave up on it while it waited.
                continue

            self._running += 1
            task = asyncio.get_running_loop().create_task(self._run(request))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _run(self, request: QueuedRequest) -> None:
        try:
            result = await request.operation()
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except (CancellationError, TerminalError) as e:
            self._reject(request, e)
        except TransientError as e:
            request.attempts += 1
            if request.retry and request.attempts < self.retry_attempts:
                self._schedule_retry(request, e)
            elif request.retry:
                logger.warning("Request failed after %d attempt(s): %r", request.attempts, e)
                exhausted = RetriesExhaustedError(e, request.attempts)
                exhausted.__cause__ = e
                self._reject(request, exhausted)
            else:
                self._reject(request, e)
        except Exception as e:
            logger.warning("Request failed with a non-retryable error: %r", e)
            self._reject(request, e)
        else:
            if not request.future.done():
                request.future.set_result(result)
        finally:
            self._running -= 1
            self._dispatch()

    def _reject(self, request: QueuedRequest, error: BaseException) -> None:
        if not request.future.done():
            request.future.set_exception(error)

    def _schedule_retry(self, request: QueuedRequest, error: Exception) -> None:
        delay = self.retry_delay * 2 ** (request.attempts - 1)
        logger.debug(
            "Attempt %d failed (%s), retrying in %.2fs",
            request.attempts,
            error.__class__.__name__,
            delay,
        )
        loop = asyncio.get_running_loop()
        self._backoff[request] = loop.call_later(delay, self._requeue, request)

    def _requeue(self, request: QueuedRequest) -> None:
        if self._backoff.pop(request, None) is None:
            return
        if request.future.done():
            return
        request.seq = next(self._retry_seq)
        self._insert(request)
        self._dispatch()
