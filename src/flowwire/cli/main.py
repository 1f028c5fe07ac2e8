# src/flowwire/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the CommLayer, then runs one command:
- ping / status: one-off requests through the queue,
- watch / execution: poll a long-running task until it resolves,
- listen: keep a socket session open and print incoming events.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
from typing import Any, Sequence

from ..config import get_settings
from ..connection.persistent_connection import ConnectionEvent
from ..core.state import CommLayer
from ..errors import FlowwireError
from ..logging_setup import setup_logging
from ..transport.models import RequestDescriptor
from .bootstrap import create_comm_layer

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flowwire", description="Resilient client for the workflow API.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("ping", help="Check connectivity and latency.")
    sub.add_parser("status", help="Fetch server status.")

    watch = sub.add_parser("watch", help="Poll a provider task until it completes or fails.")
    watch.add_argument("task_id")
    watch.add_argument("--provider", default="runninghub")
    watch.add_argument("--interval", type=float, default=None, help="Seconds between checks.")
    watch.add_argument("--max-attempts", type=int, default=None)

    execution = sub.add_parser("execution", help="Poll a workflow execution until it finishes.")
    execution.add_argument("execution_id")
    execution.add_argument("--interval", type=float, default=None, help="Seconds between checks.")
    execution.add_argument("--max-attempts", type=int, default=None)

    listen = sub.add_parser("listen", help="Open a socket session and print incoming events.")
    listen.add_argument("url", nargs="?", default=None, help="Defaults to FLOWWIRE_WS_URL.")
    listen.add_argument(
        "--event",
        action="append",
        default=[],
        help="Also print messages tagged with this type (repeatable).",
    )
    return parser


async def _cmd_ping(layer: CommLayer, args: argparse.Namespace) -> int:
    ping = getattr(layer.transport, "ping", None)
    if not callable(ping):
        print("Transport has no ping endpoint.")
        return 1
    result = await ping()
    _print_json(result)
    return 0 if result.get("success") else 1


async def _cmd_status(layer: CommLayer, args: argparse.Namespace) -> int:
    result = await layer.queue.submit(layer.transport, RequestDescriptor("/status.php"))
    _print_json(result)
    return 0


def _poll_options(args: argparse.Namespace) -> dict[str, Any]:
    def _progress(result: Any) -> None:
        status = result.get("status") if isinstance(result, dict) else None
        logger.info("Still running (status=%s)", status or "unknown")

    return {
        "interval": args.interval,
        "max_attempts": args.max_attempts,
        "on_progress": _progress,
    }


async def _cmd_watch(layer: CommLayer, args: argparse.Namespace) -> int:
    result = await layer.wait_for_task(args.task_id, provider=args.provider, **_poll_options(args))
    _print_json(result)
    return 0


async def _cmd_execution(layer: CommLayer, args: argparse.Namespace) -> int:
    result = await layer.wait_for_execution(args.execution_id, **_poll_options(args))
    _print_json(result)
    return 0


async def _cmd_listen(layer: CommLayer, args: argparse.Namespace) -> int:
    url = args.url or getattr(layer.settings, "ws_url", None)
    if not url:
        print("No socket URL. Pass one or set FLOWWIRE_WS_URL.")
        return 1

    conn = layer.connection
    conn.on(ConnectionEvent.CONNECTED, lambda _: logger.info("Connected to %s", url))
    conn.on(ConnectionEvent.DISCONNECTED, lambda _: logger.info("Disconnected from %s", url))
    conn.on(ConnectionEvent.MESSAGE, _print_json)
    for event in args.event:
        conn.on(event, _print_json)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Some platforms (Windows) do not support loop signal handlers.
            pass

    await conn.connect(url)
    await stop.wait()
    return 0


_COMMANDS = {
    "ping": _cmd_ping,
    "status": _cmd_status,
    "watch": _cmd_watch,
    "execution": _cmd_execution,
    "listen": _cmd_listen,
}


async def _run(args: argparse.Namespace) -> int:
    layer = create_comm_layer(get_settings())
    try:
        return await _COMMANDS[args.command](layer, args)
    except FlowwireError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    finally:
        await layer.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=getattr(settings, "log_dir", None), console_level=console_level)

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
