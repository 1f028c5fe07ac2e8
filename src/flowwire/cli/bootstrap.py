# src/flowwire/cli/bootstrap.py

"""
Composition root.

- loads settings once (or takes them injected),
- validates them,
- wires the transport, request queue, poller and connection into a CommLayer.
"""

from __future__ import annotations

from ..config import get_settings
from ..connection.persistent_connection import PersistentConnection
from ..core.ports import ChannelFactory, StatusTransport
from ..core.state import CommLayer
from ..dispatch.request_queue import RequestQueue
from ..polling.poller import Poller
from ..transport.http_transport import HttpTransport


def create_comm_layer(
    settings=None,
    *,
    transport: StatusTransport | None = None,
    channel_factory: ChannelFactory | None = None,
) -> CommLayer:
    """
    Build a CommLayer from the provided settings.

    Keeping settings and collaborators injectable makes the layer easy to test
    and avoids hidden global config reads. If settings is None, falls back to
    get_settings().
    """
    if settings is None:
        settings = get_settings()
    validate = getattr(settings, "validate", None)
    if callable(validate):
        validate()

    if transport is None:
        transport = HttpTransport(
            settings.api_base_url,
            csrf_token=settings.csrf_token,
            api_key=settings.api_key,
            timeout=settings.http_timeout_seconds,
        )

    return CommLayer(
        settings=settings,
        transport=transport,
        queue=RequestQueue(
            max_concurrent=settings.queue_max_concurrent,
            retry_attempts=settings.queue_retry_attempts,
            retry_delay=settings.queue_retry_delay_seconds,
        ),
        poller=Poller(
            interval=settings.poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
        ),
        connection=PersistentConnection(
            channel_factory,
            max_reconnect_attempts=settings.ws_max_reconnect_attempts,
            reconnect_delay=settings.ws_reconnect_delay_seconds,
        ),
    )
