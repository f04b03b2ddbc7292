"""Callback executors: where application handlers run.

Handlers are never called inline from the I/O path. Whatever executor is
used must run submitted callbacks in submission order.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Protocol

import structlog

log = structlog.get_logger()


class CallbackExecutor(Protocol):
    def submit(self, fn: Callable[..., Any], *args: Any) -> None: ...


class LoopExecutor:
    """Schedules callbacks with ``loop.call_soon``, which runs them FIFO.

    Handler exceptions reach the loop's exception handler, as for any other
    ``call_soon`` callback.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_soon(fn, *args)


class SerialExecutor:
    """Runs callbacks on one worker thread, in submission order."""

    def __init__(self, thread_name_prefix: str = "streamsource-callbacks") -> None:
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=thread_name_prefix)

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        future = self._pool.submit(fn, *args)
        future.add_done_callback(_report_handler_failure)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


def _report_handler_failure(future: Future[Any]) -> None:
    exc = future.exception()
    if exc is not None:
        log.error("callback_raised", error=repr(exc), exc_info=exc)
