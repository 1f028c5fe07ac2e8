# src/flowwire/__init__.py

"""
Resilient communication layer for the workflow API.

Components:
- transport: one HTTP exchange (httpx), mapped onto the error taxonomy
- dispatch: priority request queue with bounded concurrency and retry/backoff
- polling: poller for long-running remote tasks
- connection: persistent socket session with reconnection and event fan-out
- core.state.CommLayer: the handle that owns all of the above
"""

from .cli.bootstrap import create_comm_layer
from .connection.persistent_connection import ConnectionEvent, ConnectionState, PersistentConnection
from .core.state import CommLayer
from .dispatch.request_queue import RequestQueue
from .errors import (
    CancellationError,
    ChannelClosedError,
    ConfigurationError,
    FlowwireError,
    HttpError,
    NetworkError,
    PollFailedError,
    PollTimeoutError,
    ProtocolError,
    RetriesExhaustedError,
    TerminalError,
    TransientError,
)
from .polling.poll_models import PollState, PollTask
from .polling.poller import Poller
from .transport.http_transport import HttpTransport
from .transport.models import RequestDescriptor

__all__ = [
    "CancellationError",
    "ChannelClosedError",
    "CommLayer",
    "ConfigurationError",
    "ConnectionEvent",
    "ConnectionState",
    "FlowwireError",
    "HttpError",
    "HttpTransport",
    "NetworkError",
    "PersistentConnection",
    "PollFailedError",
    "PollState",
    "PollTask",
    "PollTimeoutError",
    "Poller",
    "ProtocolError",
    "RequestDescriptor",
    "RequestQueue",
    "RetriesExhaustedError",
    "TerminalError",
    "TransientError",
    "create_comm_layer",
]
