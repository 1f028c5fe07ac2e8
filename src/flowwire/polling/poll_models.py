# src/flowwire/polling/poll_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class PollState(StrEnum):
    """
    Poll lifecycle.

    ACTIVE is the only non-terminal state. STOPPED is reached only through an
    explicit stop() and never invokes a callback.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self is not PollState.ACTIVE


@dataclass(slots=True)
class PollTask:
    task_id: str
    interval: float
    max_attempts: int
    started_at: float
    attempts: int = 0
    state: PollState = PollState.ACTIVE


# Status payloads from the backend use these words besides explicit flags.
COMPLETED_STATUSES = frozenset({"completed", "success", "done"})
FAILED_STATUSES = frozenset({"failed", "error"})


def _field(result: Any, name: str) -> Any:
    if isinstance(result, dict):
        return result.get(name)
    return getattr(result, name, None)


def default_is_completed(result: Any) -> bool:
    if bool(_field(result, "completed")):
        return True
    status = _field(result, "status")
    return isinstance(status, str) and status.lower() in COMPLETED_STATUSES


def default_is_failed(result: Any) -> bool:
    if bool(_field(result, "failed")):
        return True
    status = _field(result, "status")
    return isinstance(status, str) and status.lower() in FAILED_STATUSES


def default_failure_message(result: Any) -> str:
    error = _field(result, "error")
    return str(error) if error else "Task failed"
