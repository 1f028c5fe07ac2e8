# src/flowwire/dispatch/queue_models.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from ..core.ports import Operation


@dataclass(slots=True, eq=False)
class QueuedRequest:
    """
    One unit of queued work. Owned by RequestQueue from enqueue to settle.

    seq is the tie-breaker among equal priorities: fresh enqueues take
    increasing values, retries take decreasing negative values so they sort
    ahead of everything already waiting in their priority band.
    """

    operation: Operation
    priority: int
    seq: int
    future: asyncio.Future[Any]
    retry: bool = True
    attempts: int = 0

    @property
    def sort_key(self) -> tuple[int, int]:
        return (-self.priority, self.seq)


@dataclass(slots=True, frozen=True)
class QueueStatus:
    pending: int
    running: int
    paused: bool
    retrying: int = 0
