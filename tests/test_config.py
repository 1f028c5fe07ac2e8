# tests/test_config.py

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

import pytest

from flowwire.config import Settings, get_settings, reset_settings
from flowwire.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith("FLOWWIRE_"):
            monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def test_defaults_match_component_defaults() -> None:
    s = Settings.from_env()
    assert s.app_name == "flowwire"
    assert s.queue_max_concurrent == 5
    assert s.queue_retry_attempts == 3
    assert s.queue_retry_delay_seconds == 1.0
    assert s.poll_interval_seconds == 2.0
    assert s.poll_max_attempts == 300
    assert s.ws_max_reconnect_attempts == 5
    assert s.ws_reconnect_delay_seconds == 1.0
    assert s.ws_url is None
    assert s.log_dir == Path(".local/flowwire")
    assert s.validate() is s


def test_env_overrides_and_bad_numbers_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLOWWIRE_API_BASE_URL", "https://flow.example/api")
    monkeypatch.setenv("FLOWWIRE_QUEUE_MAX_CONCURRENT", "8")
    monkeypatch.setenv("FLOWWIRE_POLL_INTERVAL_SECONDS", "0.5")
    monkeypatch.setenv("FLOWWIRE_POLL_MAX_ATTEMPTS", "lots")
    monkeypatch.setenv("FLOWWIRE_API_KEY", "   ")
    monkeypatch.setenv("FLOWWIRE_WS_URL", "wss://flow.example/ws")

    s = get_settings()
    assert s.api_base_url == "https://flow.example/api"
    assert s.queue_max_concurrent == 8
    assert s.poll_interval_seconds == 0.5
    assert s.poll_max_attempts == 300
    assert s.api_key is None
    assert s.ws_url == "wss://flow.example/ws"
    assert get_settings() is s


@pytest.mark.parametrize(
    "field,value",
    [
        ("queue_max_concurrent", 0),
        ("queue_retry_attempts", 0),
        ("queue_retry_delay_seconds", -1.0),
        ("poll_interval_seconds", 0.0),
        ("poll_max_attempts", 0),
        ("ws_max_reconnect_attempts", -1),
        ("ws_reconnect_delay_seconds", -0.1),
        ("http_timeout_seconds", 0.0),
        ("api_base_url", "  "),
    ],
)
def test_validate_rejects_out_of_range_values(field: str, value) -> None:
    bad = replace(Settings.from_env(), **{field: value})
    with pytest.raises(ConfigurationError):
        bad.validate()
