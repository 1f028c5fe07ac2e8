# src/flowwire/polling/poller.py

"""
Poller for long-running remote tasks.

One asyncio task per task id runs a small loop:
- call check_fn (first call immediately, then every `interval` seconds),
- completed result -> COMPLETED, on_complete(result)
- failed result    -> FAILED, on_error(PollFailedError)
- anything else    -> on_progress(result), and TIMED_OUT once the attempt
  budget is spent
- a raising check_fn is logged and the loop keeps going; it never ends the
  poll and does not count towards the timeout.

Checks for one task id never overlap: the next one starts only after the
previous returned, and a restarted id waits for the old in-flight check.

To stop a poll, call stop(task_id) or stop_all().
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from ..core.ports import StatusCheck
from ..errors import CancellationError, ConfigurationError, PollFailedError, PollTimeoutError
from .poll_models import (
    PollState,
    PollTask,
    default_failure_message,
    default_is_completed,
    default_is_failed,
)

logger = logging.getLogger(__name__)

PollCallback = Callable[[Any], Any]
ResultPredicate = Callable[[Any], bool]

_NO_RESULT = object()


@dataclass(slots=True)
class _PollHooks:
    on_progress: PollCallback | None
    on_complete: PollCallback | None
    on_error: PollCallback | None
    is_completed: ResultPredicate
    is_failed: ResultPredicate
    failure_message: Callable[[Any], str]


@dataclass(slots=True, eq=False)
class _ActivePoll:
    poll: PollTask
    done: asyncio.Future[PollState]
    runner: asyncio.Task[None] | None = None
    in_check: bool = False


async def _invoke(callback: PollCallback | None, arg: Any) -> None:
    if callback is None:
        return
    try:
        out = callback(arg)
        if inspect.isawaitable(out):
            await out
    except Exception:
        logger.exception("Poll callback %r failed", callback)


class Poller:
    def __init__(self, *, interval: float = 2.0, max_attempts: int = 300) -> None:
        self.default_interval = float(interval)
        self.default_max_attempts = int(max_attempts)
        self._polls: dict[str, _ActivePoll] = {}

    def start(
            self,
            task_id: str,
            check_fn: StatusCheck,
            *,
            interval: float | None = None,
            max_attempts: int | None = None,
            on_progress: PollCallback | None = None,
            on_complete: PollCallback | None = None,
            on_error: PollCallback | None = None,
            is_completed: ResultPredicate = default_is_completed,
            is_failed: ResultPredicate = default_is_failed,
            failure_message: Callable[[Any], str] = default_failure_message,
    ) -> str:
        interval_s = self.default_interval if interval is None else float(interval)
        attempts_max = self.default_max_attempts if max_attempts is None else int(max_attempts)
        if interval_s <= 0:
            raise ConfigurationError(f"interval must be > 0, got {interval!r}")
        if attempts_max < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {max_attempts!r}")

        loop = asyncio.get_running_loop()

        previous = self._polls.get(task_id)
        wait_for = previous.runner if previous is not None and previous.in_check else None
        self.stop(task_id)

        handle = _ActivePoll(
            poll=PollTask(
                task_id=task_id,
                interval=interval_s,
                max_attempts=attempts_max,
                started_at=time.time(),
            ),
            done=loop.create_future(),
        )
        hooks = _PollHooks(
            on_progress=on_progress,
            on_complete=on_complete,
            on_error=on_error,
            is_completed=is_completed,
            is_failed=is_failed,
            failure_message=failure_message,
        )
        self._polls[task_id] = handle
        handle.runner = loop.create_task(self._run(handle, check_fn, hooks, wait_for), name=f"poll:{task_id}")
        logger.debug("Polling started task_id=%s interval=%.2fs max_attempts=%d", task_id, interval_s, attempts_max)
        return task_id

    async def watch(self, task_id: str, check_fn: StatusCheck, **options: Any) -> Any:
        """
        start() and wait for the outcome.

        Returns the completing result; raises PollFailedError/PollTimeoutError,
        or CancellationError if the poll is stopped before it resolves.
        """
        outcome: dict[str, Any] = {}
        user_complete = options.pop("on_complete", None)
        user_error = options.pop("on_error", None)

        async def _complete(result: Any) -> None:
            outcome["result"] = result
            await _invoke(user_complete, result)

        async def _error(err: Exception) -> None:
            outcome["error"] = err
            await _invoke(user_error, err)

        self.start(task_id, check_fn, on_complete=_complete, on_error=_error, **options)
        handle = self._polls[task_id]
        try:
            state = await asyncio.shield(handle.done)
        except asyncio.CancelledError:
            self.stop(task_id)
            raise

        if state is PollState.COMPLETED:
            return outcome.get("result")
        if "error" in outcome:
            raise outcome["error"]
        raise CancellationError(f"Polling stopped: {task_id}")

    def stop(self, task_id: str) -> None:
        handle = self._polls.pop(task_id, None)
        if handle is None:
            return

        handle.poll.state = PollState.STOPPED
        runner = handle.runner
        # An in-flight check is allowed to finish; its result is dropped.
        if runner is not None and not handle.in_check and runner is not asyncio.current_task():
            runner.cancel()
        self._resolve(handle, PollState.STOPPED)
        logger.debug("Polling stopped task_id=%s after %d attempt(s)", task_id, handle.poll.attempts)

    def stop_all(self) -> None:
        for task_id in list(self._polls):
            self.stop(task_id)

    def is_polling(self, task_id: str) -> bool:
        return task_id in self._polls

    def get_status(self, task_id: str) -> PollTask | None:
        handle = self._polls.get(task_id)
        return handle.poll if handle is not None else None

    @property
    def active_count(self) -> int:
        return len(self._polls)

    # ---- internals ----

    def _is_current(self, handle: _ActivePoll) -> bool:
        return self._polls.get(handle.poll.task_id) is handle and handle.poll.state is PollState.ACTIVE

    def _finish(self, handle: _ActivePoll, state: PollState) -> None:
        handle.poll.state = state
        if self._polls.get(handle.poll.task_id) is handle:
            del self._polls[handle.poll.task_id]

    @staticmethod
    def _resolve(handle: _ActivePoll, state: PollState) -> None:
        if not handle.done.done():
            handle.done.set_result(state)

    async def _run(
            self,
            handle: _ActivePoll,
            check_fn: StatusCheck,
            hooks: _PollHooks,
            wait_for: asyncio.Task[None] | None,
    ) -> None:
        poll = handle.poll

        if wait_for is not None:
            await asyncio.wait({wait_for})

        while self._is_current(handle):
            poll.attempts += 1
            handle.in_check = True
            try:
                result = await check_fn()
            except Exception as e:
                logger.warning("Polling error task_id=%s attempt=%d: %r", poll.task_id, poll.attempts, e)
                result = _NO_RESULT
            finally:
                handle.in_check = False

            if not self._is_current(handle):
                return

            if result is not _NO_RESULT:
                if hooks.is_completed(result):
                    self._finish(handle, PollState.COMPLETED)
                    logger.info("Task %s completed after %d check(s)", poll.task_id, poll.attempts)
                    await _invoke(hooks.on_complete, result)
                    self._resolve(handle, poll.state)
                    return

                if hooks.is_failed(result):
                    self._finish(handle, PollState.FAILED)
                    message = hooks.failure_message(result)
                    logger.info("Task %s failed: %s", poll.task_id, message)
                    await _invoke(hooks.on_error, PollFailedError(message, result))
                    self._resolve(handle, poll.state)
                    return

                await _invoke(hooks.on_progress, result)
                if not self._is_current(handle):
                    return

                if poll.attempts >= poll.max_attempts:
                    self._finish(handle, PollState.TIMED_OUT)
                    logger.warning("Task %s timed out after %d check(s)", poll.task_id, poll.attempts)
                    await _invoke(hooks.on_error, PollTimeoutError(poll.task_id, poll.attempts))
                    self._resolve(handle, poll.state)
                    return

            await asyncio.sleep(poll.interval)

