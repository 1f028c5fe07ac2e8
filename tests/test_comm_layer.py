# tests/test_comm_layer.py

from __future__ import annotations

import asyncio

import pytest

from flowwire.connection.persistent_connection import ConnectionState
from flowwire.core.state import CommLayer
from flowwire.errors import NetworkError, PollFailedError, PollTimeoutError

from .fakes import FakeTransport


def test_layer_is_wired_from_settings(layer: CommLayer) -> None:
    assert layer.queue.max_concurrent == 2
    assert layer.queue.retry_attempts == 3
    assert layer.poller.default_interval == 0.01
    assert layer.poller.default_max_attempts == 20
    assert layer.connection.max_reconnect_attempts == 2
    assert layer.connection.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_wait_for_task_polls_through_queue(layer: CommLayer, transport: FakeTransport) -> None:
    transport.responses["/proxy/status.php"] = [
        {"success": True, "status": "processing"},
        NetworkError("blip"),
        {"success": True, "status": "completed", "url": "https://cdn/x.mp4"},
    ]
    progress: list[object] = []

    result = await layer.wait_for_task("t-42", provider="kie", on_progress=progress.append)

    assert result["url"] == "https://cdn/x.mp4"
    assert progress == [{"success": True, "status": "processing"}]
    assert len(transport.calls) == 3
    assert transport.calls[0].params == {"task_id": "t-42", "provider": "kie"}
    assert not layer.poller.is_polling("t-42")


@pytest.mark.asyncio
async def test_track_execution_treats_cancelled_as_failure(layer: CommLayer, transport: FakeTransport) -> None:
    transport.responses["/workflows/status.php"] = [{"success": True, "status": "cancelled"}]
    errors: list[Exception] = []
    done = asyncio.Event()

    def on_error(err: Exception) -> None:
        errors.append(err)
        done.set()

    assert layer.track_execution("e-7", on_error=on_error) == "e-7"
    await asyncio.wait_for(done.wait(), 1.0)

    assert isinstance(errors[0], PollFailedError)
    assert str(errors[0]) == "Execution failed"


@pytest.mark.asyncio
async def test_track_task_times_out(layer: CommLayer, transport: FakeTransport) -> None:
    transport.responses["/proxy/status.php"] = [{"success": True, "status": "processing"}]

    with pytest.raises(PollTimeoutError):
        await layer.wait_for_task("t-1", max_attempts=3)
    assert len(transport.calls) == 3


@pytest.mark.asyncio
async def test_aclose_tears_everything_down(layer: CommLayer, transport: FakeTransport) -> None:
    transport.responses["/proxy/status.php"] = [{"status": "processing"}]
    layer.track_task("t-1", interval=0.5)

    assert await layer.connection.connect("ws://test/socket") is True

    await layer.aclose()

    assert layer.poller.active_count == 0
    assert layer.connection.state is ConnectionState.DISCONNECTED
    assert layer.connection.url is None
    assert transport.closed
