# src/flowwire/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole client (normal "settings layer").
- No secrets required at import time.
- Component defaults match the constructor defaults of queue/poller/connection.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

ENV_PREFIX = "FLOWWIRE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# A local .env never overrides variables already set in the environment.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_optional(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_dir: Path

    # ---- HTTP transport ----
    api_base_url: str
    api_key: Optional[str]
    csrf_token: Optional[str]
    http_timeout_seconds: float

    # ---- Request queue ----
    queue_max_concurrent: int
    queue_retry_attempts: int
    queue_retry_delay_seconds: float

    # ---- Poller ----
    poll_interval_seconds: float
    poll_max_attempts: int

    # ---- Persistent connection ----
    ws_url: Optional[str]
    ws_max_reconnect_attempts: int
    ws_reconnect_delay_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            app_name=_env(_k("APP_NAME"), "flowwire") or "flowwire",
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            log_dir=_env_path(_k("LOG_DIR"), Path(".local/flowwire")),
            api_base_url=_env(_k("API_BASE_URL"), "http://localhost/api"),
            api_key=_env_optional(_k("API_KEY")),
            csrf_token=_env_optional(_k("CSRF_TOKEN")),
            http_timeout_seconds=_env_float(_k("HTTP_TIMEOUT_SECONDS"), 30.0),
            queue_max_concurrent=_env_int(_k("QUEUE_MAX_CONCURRENT"), 5),
            queue_retry_attempts=_env_int(_k("QUEUE_RETRY_ATTEMPTS"), 3),
            queue_retry_delay_seconds=_env_float(_k("QUEUE_RETRY_DELAY_SECONDS"), 1.0),
            poll_interval_seconds=_env_float(_k("POLL_INTERVAL_SECONDS"), 2.0),
            poll_max_attempts=_env_int(_k("POLL_MAX_ATTEMPTS"), 300),
            ws_url=_env_optional(_k("WS_URL")),
            ws_max_reconnect_attempts=_env_int(_k("WS_MAX_RECONNECT_ATTEMPTS"), 5),
            ws_reconnect_delay_seconds=_env_float(_k("WS_RECONNECT_DELAY_SECONDS"), 1.0),
        )

    def validate(self) -> "Settings":
        """Raise ConfigurationError for values no component would accept."""
        if not self.api_base_url.strip():
            raise ConfigurationError("API base URL is not set. Set FLOWWIRE_API_BASE_URL in your .env.")
        if self.http_timeout_seconds <= 0:
            raise ConfigurationError("FLOWWIRE_HTTP_TIMEOUT_SECONDS must be > 0")
        if self.queue_max_concurrent < 1:
            raise ConfigurationError("FLOWWIRE_QUEUE_MAX_CONCURRENT must be >= 1")
        if self.queue_retry_attempts < 1:
            raise ConfigurationError("FLOWWIRE_QUEUE_RETRY_ATTEMPTS must be >= 1")
        if self.queue_retry_delay_seconds < 0:
            raise ConfigurationError("FLOWWIRE_QUEUE_RETRY_DELAY_SECONDS must be >= 0")
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError("FLOWWIRE_POLL_INTERVAL_SECONDS must be > 0")
        if self.poll_max_attempts < 1:
            raise ConfigurationError("FLOWWIRE_POLL_MAX_ATTEMPTS must be >= 1")
        if self.ws_max_reconnect_attempts < 0:
            raise ConfigurationError("FLOWWIRE_WS_MAX_RECONNECT_ATTEMPTS must be >= 0")
        if self.ws_reconnect_delay_seconds < 0:
            raise ConfigurationError("FLOWWIRE_WS_RECONNECT_DELAY_SECONDS must be >= 0")
        return self


_settings: Settings | None = None


def get_settings() -> Settings:
    """Settings are read lazily once, so tests can patch the environment first."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
