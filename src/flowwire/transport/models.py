# src/flowwire/transport/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Methods that may be replayed without changing the outcome on the server.
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


@dataclass(slots=True)
class RequestDescriptor:
    """
    Everything the transport needs for one exchange.

    idempotent=None means "decide from the method"; the request queue only
    retries idempotent descriptors.
    """

    endpoint: str
    method: str = "GET"
    body: Any = None
    params: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    api_key: str | None = None
    idempotent: bool | None = None

    def __post_init__(self) -> None:
        self.method = (self.method or "GET").upper()
        if self.idempotent is None:
            self.idempotent = self.method in IDEMPOTENT_METHODS
