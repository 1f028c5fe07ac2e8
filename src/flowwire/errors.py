# src/flowwire/errors.py

"""
Error taxonomy shared by transport, queue, poller and connection.

Retry decisions are made on the class of an error, never on its message:
- TransientError and its subclasses may be retried,
- TerminalError is surfaced to the caller as-is,
- CancellationError means the work never started (queue cleared),
- ConfigurationError rejects invalid options at construction time.
"""

from __future__ import annotations

from typing import Any


class FlowwireError(Exception):
    """Base class for every error raised by flowwire."""


class TransientError(FlowwireError):
    """A fault that may go away on its own (network blip, 5xx, timeout)."""


class NetworkError(TransientError):
    """The request never produced a response (DNS, refused, reset, timeout)."""


class HttpError(TransientError):
    def __init__(self, status: int, message: str | None = None, payload: Any = None) -> None:
        self.status = int(status)
        self.payload = payload
        super().__init__(message or f"HTTP {self.status}")

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500


class ProtocolError(TransientError):
    """The server answered, but the body could not be understood."""


class ChannelClosedError(TransientError):
    """The duplex channel was closed by the peer or the network."""


class TerminalError(FlowwireError):
    """A failure that must reach the caller without further retries."""


class RetriesExhaustedError(TerminalError):
    def __init__(self, last_error: BaseException, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = int(attempts)
        super().__init__(f"Request failed after {self.attempts} attempt(s): {last_error}")


class PollFailedError(TerminalError):
    def __init__(self, message: str, result: Any = None) -> None:
        self.result = result
        super().__init__(message)


class PollTimeoutError(TerminalError):
    def __init__(self, task_id: str, attempts: int) -> None:
        self.task_id = task_id
        self.attempts = int(attempts)
        super().__init__("Polling timeout")


class CancellationError(FlowwireError):
    """Queued work was dropped before it started."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__(message)


class ConfigurationError(FlowwireError, ValueError):
    """An option value is out of range or of the wrong kind."""
