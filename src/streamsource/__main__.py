"""Entry point: python -m streamsource URL

Subscribes to an event stream and prints every delivered message or named
event as one JSON line on stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import sys

import structlog

from .config import EventSourceConfig
from .errors import EventSourceError
from .lifecycle.event_source import EventSource
from .logging_config import setup_logging
from .store.db import SqliteStore
from .store.memory import MemoryStore

log = structlog.get_logger()


def _parse_header(value: str) -> tuple[str, str]:
    name, sep, content = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected 'Name: value', got {value!r}")
    return name.strip(), content.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Server-Sent Events client")
    parser.add_argument("url", nargs="?", default=None, help="Event stream URL")
    parser.add_argument(
        "--header", "-H", action="append", type=_parse_header, default=[],
        help="Extra request header, 'Name: value' (repeatable)",
    )
    parser.add_argument("--user", default=None, help="Basic auth user name")
    parser.add_argument("--password", default="", help="Basic auth password")
    parser.add_argument(
        "--event", "-e", action="append", default=[],
        help="Named event to print in addition to plain messages (repeatable)",
    )
    parser.add_argument("--store", default=None, help="SQLite file for last event ids")
    parser.add_argument("--memory", action="store_true", help="Keep last event ids in memory only")
    parser.add_argument("--forget", action="store_true", help="Drop the stored last event id before connecting")
    parser.add_argument("--list", action="store_true", help="Print stored last event ids and exit")
    parser.add_argument("--retry-ms", type=int, default=None, help="Initial reconnect delay in ms")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    return parser


def _print_event(event_id: str | None, event: str, data: str) -> None:
    sys.stdout.write(json.dumps({"id": event_id, "event": event, "data": data}) + "\n")
    sys.stdout.flush()


def _log_error(error: EventSourceError) -> None:
    log.error("stream_error_reported", error=str(error))


async def list_stored(store_path: str) -> None:
    store = SqliteStore(store_path)
    await store.connect()
    try:
        for row in await store.list_entries():
            sys.stdout.write(json.dumps({
                "key": row.key,
                "last_event_id": row.value,
                "updated_at": row.updated_at,
            }) + "\n")
    finally:
        await store.close()
    sys.stdout.flush()


async def run(args: argparse.Namespace, config: EventSourceConfig) -> None:
    headers = dict(args.header)
    if args.user is not None:
        headers["Authorization"] = EventSource.basic_auth(args.user, args.password)

    sqlite_store: SqliteStore | None = None
    if args.memory:
        store: MemoryStore | SqliteStore = MemoryStore()
    else:
        sqlite_store = SqliteStore(args.store or config.store_path)
        await sqlite_store.connect()
        store = sqlite_store

    source = EventSource(args.url, headers, config=config, store=store)
    if args.forget and sqlite_store is not None:
        await sqlite_store.delete(source.store_key)

    source.on_open(lambda: log.info("stream_open", url=args.url))
    source.on_error(_log_error)
    source.on_message(_print_event)
    for name in args.event:
        source.add_event_listener(name, _print_event)

    try:
        await source.connect()
        await asyncio.Event().wait()
    finally:
        await source.aclose()
        if sqlite_store is not None:
            await sqlite_store.close()


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if args.url is None and not args.list:
        parser.error("a stream URL is required unless --list is given")

    config = EventSourceConfig()
    if args.retry_ms is not None:
        config.retry_interval_ms = args.retry_ms
    if args.log_level:
        config.log_level = args.log_level

    setup_logging(config.log_dir, config.log_level)

    if args.list:
        asyncio.run(list_stored(args.store or config.store_path))
        return

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run(args, config))


if __name__ == "__main__":
    main()
