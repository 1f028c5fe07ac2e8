# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from flowwire.cli.bootstrap import create_comm_layer
from flowwire.core.state import CommLayer

from .fakes import FakeChannel, FakeChannelFactory, FakeTransport


@pytest.fixture()
def settings() -> SimpleNamespace:
    """
    Minimal settings object compatible with create_comm_layer.

    We intentionally use a SimpleNamespace rather than reading the environment,
    to keep unit tests isolated and fast (short delays everywhere).
    """
    return SimpleNamespace(
        app_name="flowwire-test",
        api_base_url="http://test/api",
        api_key=None,
        csrf_token=None,
        http_timeout_seconds=5.0,
        queue_max_concurrent=2,
        queue_retry_attempts=3,
        queue_retry_delay_seconds=0.01,
        poll_interval_seconds=0.01,
        poll_max_attempts=20,
        ws_url="ws://test/socket",
        ws_max_reconnect_attempts=2,
        ws_reconnect_delay_seconds=0.01,
    )


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def layer(settings: SimpleNamespace, transport: FakeTransport, channel: FakeChannel) -> CommLayer:
    """CommLayer wired with deterministic fakes."""
    return create_comm_layer(settings, transport=transport, channel_factory=FakeChannelFactory(channel))
