# tests/test_poller.py

from __future__ import annotations

import asyncio

import pytest

from flowwire.errors import (
    CancellationError,
    ConfigurationError,
    NetworkError,
    PollFailedError,
    PollTimeoutError,
)
from flowwire.polling.poll_models import PollState
from flowwire.polling.poller import Poller

from .fakes import wait_until


class Recorder:
    """Collects poll callbacks for assertions."""

    def __init__(self) -> None:
        self.progress: list[object] = []
        self.completed: list[object] = []
        self.errors: list[Exception] = []
        self.done = asyncio.Event()

    def on_progress(self, result) -> None:
        self.progress.append(result)

    def on_complete(self, result) -> None:
        self.completed.append(result)
        self.done.set()

    def on_error(self, err) -> None:
        self.errors.append(err)
        self.done.set()

    def callbacks(self) -> dict:
        return {
            "on_progress": self.on_progress,
            "on_complete": self.on_complete,
            "on_error": self.on_error,
        }


def scripted(*results):
    """check_fn returning results in order (the last one repeats); exceptions are raised."""
    calls = {"n": 0}

    async def check():
        i = min(calls["n"], len(results) - 1)
        calls["n"] += 1
        outcome = results[i]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return check, calls


@pytest.mark.asyncio
async def test_completes_on_third_check() -> None:
    poller = Poller()
    rec = Recorder()
    check, calls = scripted({"completed": False}, {"completed": False}, {"completed": True, "url": "x"})

    assert poller.start("t1", check, interval=0.01, **rec.callbacks()) == "t1"
    assert poller.is_polling("t1")

    await asyncio.wait_for(rec.done.wait(), 1.0)
    await asyncio.sleep(0.03)

    assert calls["n"] == 3
    assert len(rec.progress) == 2
    assert rec.completed == [{"completed": True, "url": "x"}]
    assert rec.errors == []
    assert not poller.is_polling("t1")
    assert poller.get_status("t1") is None


@pytest.mark.asyncio
async def test_first_check_happens_without_waiting_an_interval() -> None:
    poller = Poller()
    check, calls = scripted({"completed": False})

    poller.start("t1", check, interval=10.0)
    await wait_until(lambda: calls["n"] == 1, timeout=0.5)
    poller.stop("t1")


@pytest.mark.asyncio
async def test_times_out_after_max_attempts() -> None:
    poller = Poller()
    rec = Recorder()
    check, calls = scripted({"completed": False, "progress": 10})

    poller.start("t1", check, interval=0.005, max_attempts=4, **rec.callbacks())
    await asyncio.wait_for(rec.done.wait(), 1.0)
    await asyncio.sleep(0.03)

    assert calls["n"] == 4
    assert len(rec.progress) == 4
    assert rec.completed == []
    assert len(rec.errors) == 1
    assert isinstance(rec.errors[0], PollTimeoutError)
    assert rec.errors[0].attempts == 4


@pytest.mark.asyncio
async def test_failed_result_reports_server_message() -> None:
    poller = Poller()
    rec = Recorder()
    check, calls = scripted({"failed": True, "error": "GPU quota exceeded"})

    poller.start("t1", check, interval=0.01, **rec.callbacks())
    await asyncio.wait_for(rec.done.wait(), 1.0)

    assert calls["n"] == 1
    assert rec.progress == []
    assert isinstance(rec.errors[0], PollFailedError)
    assert str(rec.errors[0]) == "GPU quota exceeded"
    assert rec.errors[0].result == {"failed": True, "error": "GPU quota exceeded"}


@pytest.mark.asyncio
async def test_failed_result_without_message_uses_generic_one() -> None:
    poller = Poller()
    rec = Recorder()
    check, _ = scripted({"status": "error"})

    poller.start("t1", check, interval=0.01, **rec.callbacks())
    await asyncio.wait_for(rec.done.wait(), 1.0)

    assert str(rec.errors[0]) == "Task failed"


@pytest.mark.asyncio
async def test_status_words_count_as_completion() -> None:
    poller = Poller()
    rec = Recorder()
    check, _ = scripted({"status": "processing"}, {"status": "done"})

    poller.start("t1", check, interval=0.01, **rec.callbacks())
    await asyncio.wait_for(rec.done.wait(), 1.0)

    assert rec.completed == [{"status": "done"}]
    assert rec.progress == [{"status": "processing"}]


@pytest.mark.asyncio
async def test_check_errors_are_swallowed_and_polling_continues() -> None:
    poller = Poller()
    rec = Recorder()
    check, calls = scripted(NetworkError("blip"), NetworkError("blip"), {"completed": True})

    poller.start("t1", check, interval=0.005, **rec.callbacks())
    await asyncio.wait_for(rec.done.wait(), 1.0)

    assert calls["n"] == 3
    assert rec.errors == []
    assert rec.progress == []
    assert len(rec.completed) == 1


@pytest.mark.asyncio
async def test_failing_checks_never_time_out_the_poll() -> None:
    poller = Poller()
    rec = Recorder()
    calls = 0

    async def check():
        nonlocal calls
        calls += 1
        raise NetworkError("status endpoint down")

    poller.start("t1", check, interval=0.001, max_attempts=3, **rec.callbacks())
    await wait_until(lambda: calls > 6)

    assert poller.is_polling("t1")
    assert rec.errors == []
    assert rec.completed == []
    poller.stop("t1")


@pytest.mark.asyncio
async def test_progress_after_failing_checks_can_time_out() -> None:
    poller = Poller()
    rec = Recorder()
    check, calls = scripted(NetworkError("blip"), NetworkError("blip"), {"completed": False})

    poller.start("t1", check, interval=0.005, max_attempts=3, **rec.callbacks())
    await asyncio.wait_for(rec.done.wait(), 1.0)

    assert calls["n"] == 3
    assert len(rec.progress) == 1
    assert isinstance(rec.errors[0], PollTimeoutError)


@pytest.mark.asyncio
async def test_restarting_same_task_id_does_not_double_the_rate() -> None:
    poller = Poller()
    first, first_calls = scripted({"completed": False})
    second, second_calls = scripted({"completed": False})

    poller.start("t1", first, interval=0.02)
    poller.start("t1", second, interval=0.02)
    await asyncio.sleep(0.11)
    poller.stop("t1")

    # ~6 checks expected for one timer; two timers would give ~12.
    assert first_calls["n"] + second_calls["n"] <= 8
    assert second_calls["n"] >= 3
    assert poller.active_count == 0


@pytest.mark.asyncio
async def test_stop_is_silent_and_idempotent() -> None:
    poller = Poller()
    rec = Recorder()
    check, calls = scripted({"completed": False})

    poller.start("t1", check, interval=0.01, **rec.callbacks())
    await wait_until(lambda: calls["n"] >= 2)

    poller.stop("t1")
    poller.stop("t1")
    poller.stop("never-started")
    seen = calls["n"]
    await asyncio.sleep(0.05)

    assert calls["n"] == seen
    assert not poller.is_polling("t1")
    assert rec.completed == [] and rec.errors == []


@pytest.mark.asyncio
async def test_stop_lets_in_flight_check_finish_and_drops_its_result() -> None:
    poller = Poller()
    rec = Recorder()
    gate = asyncio.Event()
    finished = asyncio.Event()

    async def check():
        await gate.wait()
        finished.set()
        return {"completed": True}

    poller.start("t1", check, interval=0.01, **rec.callbacks())
    await asyncio.sleep(0.01)
    poller.stop("t1")

    gate.set()
    await asyncio.wait_for(finished.wait(), 1.0)
    await asyncio.sleep(0.02)

    assert rec.completed == []
    assert rec.errors == []


@pytest.mark.asyncio
async def test_stop_all_and_status() -> None:
    poller = Poller(interval=0.01)
    check_a, _ = scripted({"completed": False})
    check_b, _ = scripted({"completed": False})

    poller.start("a", check_a)
    poller.start("b", check_b, max_attempts=50)

    status = poller.get_status("b")
    assert status is not None
    assert status.task_id == "b"
    assert status.max_attempts == 50
    assert status.interval == 0.01
    assert status.state is PollState.ACTIVE

    poller.stop_all()
    assert poller.active_count == 0
    assert not poller.is_polling("a")
    assert status.state is PollState.STOPPED


@pytest.mark.asyncio
async def test_callback_failure_does_not_kill_the_poll() -> None:
    poller = Poller()
    done = asyncio.Event()
    check, calls = scripted({"completed": False}, {"completed": True})

    def bad_progress(_result) -> None:
        raise RuntimeError("ui exploded")

    poller.start("t1", check, interval=0.005, on_progress=bad_progress, on_complete=lambda _r: done.set())
    await asyncio.wait_for(done.wait(), 1.0)
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_watch_returns_result_or_raises() -> None:
    poller = Poller(interval=0.005)

    check, _ = scripted({"completed": False}, {"completed": True, "id": 7})
    assert await poller.watch("ok", check) == {"completed": True, "id": 7}

    check, _ = scripted({"completed": False})
    with pytest.raises(PollTimeoutError):
        await poller.watch("slow", check, max_attempts=3)

    check, _ = scripted({"completed": False})
    waiter = asyncio.create_task(poller.watch("stopped", check))
    await wait_until(lambda: poller.is_polling("stopped"))
    poller.stop("stopped")
    with pytest.raises(CancellationError):
        await waiter


@pytest.mark.asyncio
async def test_invalid_options_raise_configuration_error() -> None:
    poller = Poller()
    check, _ = scripted({"completed": False})
    with pytest.raises(ConfigurationError):
        poller.start("t1", check, interval=0)
    with pytest.raises(ConfigurationError):
        poller.start("t1", check, max_attempts=0)
    assert not poller.is_polling("t1")
