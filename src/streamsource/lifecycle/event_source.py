"""EventSource: one logical SSE subscription and its reconnect loop.

Every transport callback, framing, parsing and dispatch step runs on the
event loop that called :meth:`EventSource.connect`, so none of the
per-connection state needs locking. Application handlers only ever run
through the callback executor.

Reconnection is a fixed delay of ``retry_interval_ms`` with no backoff and
no attempt limit; the server can change the delay with a ``retry:`` field.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Callable

import structlog

from streamsource.config import EventSourceConfig
from streamsource.errors import (
    ConnectionLostError,
    EventSourceError,
    HTTPStatusError,
    StreamCancelled,
)
from streamsource.store.keys import last_event_id_key
from streamsource.store.memory import LastEventIdStore, MemoryStore
from streamsource.stream.dispatcher import Dispatcher, EventHandler
from streamsource.stream.executor import CallbackExecutor, LoopExecutor
from streamsource.stream.framer import ByteFramer
from streamsource.transport.base import StreamHandle, Transport
from streamsource.transport.httpx_transport import HttpxTransport

from .state_machine import ReadyState, SubscriptionState, transition

log = structlog.get_logger()

OpenHandler = Callable[[], Any]
ErrorHandler = Callable[[EventSourceError], Any]


class EventSource:
    """Client for a single ``text/event-stream`` URL.

    Usage::

        source = EventSource("https://example.com/stream")
        source.on_message(lambda id, event, data: print(data))
        source.add_event_listener("update", handle_update)
        await source.connect()
        ...
        source.close()
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        *,
        config: EventSourceConfig | None = None,
        transport: Transport | None = None,
        store: LastEventIdStore | None = None,
        executor: CallbackExecutor | None = None,
    ) -> None:
        self.url = url
        self.config = config if config is not None else EventSourceConfig()
        self._headers = dict(headers or {})

        self._owns_transport = transport is None
        self._transport: Transport = transport if transport is not None else HttpxTransport(
            connect_timeout=self.config.connect_timeout_seconds,
        )
        self._store: LastEventIdStore = store if store is not None else MemoryStore()
        self._executor: CallbackExecutor = executor if executor is not None else LoopExecutor()
        self._store_key = last_event_id_key(url, self.config.last_event_id_namespace)

        self._state = SubscriptionState(retry_interval_ms=self.config.retry_interval_ms)
        self._framer = ByteFramer()
        self._dispatcher = Dispatcher(
            self._state, self._store, self._store_key, self._executor, source=url,
        )
        self._delegate = _StreamDelegate(self)

        self._handle: StreamHandle | None = None
        self._on_open: OpenHandler | None = None
        self._on_error: ErrorHandler | None = None
        self._pending_error: EventSourceError | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        # Bumped by connect() and close(); a connect that awaited across a bump is stale
        self._generation = 0

    # -- read-only state ---------------------------------------------------

    @property
    def ready_state(self) -> ReadyState:
        return self._state.ready_state

    @property
    def retry_interval_ms(self) -> int:
        return self._state.retry_interval_ms

    @property
    def last_event_id(self) -> str | None:
        """The id sent as Last-Event-Id on the next connect, as last seen by this instance."""
        return self._state.last_event_id

    @property
    def store_key(self) -> str:
        return self._store_key

    # -- connect / close ---------------------------------------------------

    async def connect(self) -> None:
        """Open the stream, resuming from the stored last event id if there is one."""
        self._cancel_reconnect_timer()
        self._drop_transport()
        if self._state.ready_state is not ReadyState.CLOSED:
            self._set_state(ReadyState.CLOSED, "reconnect")
        self._set_state(ReadyState.CONNECTING, "connect")

        self._generation += 1
        generation = self._generation
        try:
            last_event_id = await self._store.get(self._store_key)
        except Exception:
            if generation == self._generation:
                self._set_state(ReadyState.CLOSED, "store_read_failed")
            raise
        if generation != self._generation:
            # close() or another connect() ran while the store was read
            return

        self._state.last_event_id = last_event_id
        self._framer.reset()
        headers = self._request_headers(last_event_id)
        log.info("stream_connecting", source=self.url, last_event_id=last_event_id)
        self._handle = self._transport.open(self.url, headers, self._delegate)

    def close(self) -> None:
        """Stop the subscription. No callback from the current transport fires afterwards."""
        self._generation += 1
        self._cancel_reconnect_timer()
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._drop_transport()
        if self._state.ready_state is not ReadyState.CLOSED:
            self._set_state(ReadyState.CLOSED, "close")

    async def aclose(self) -> None:
        """close(), then release the HTTP client if this instance created it."""
        self.close()
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            await self._transport.aclose()

    # -- handler registration ----------------------------------------------

    def on_open(self, handler: OpenHandler) -> None:
        self._on_open = handler

    def on_error(self, handler: ErrorHandler) -> None:
        """Register the error handler; an error raised before registration is delivered now."""
        self._on_error = handler
        if self._pending_error is not None:
            pending, self._pending_error = self._pending_error, None
            self._executor.submit(handler, pending)

    def on_message(self, handler: EventHandler) -> None:
        """Handler for records without an ``event:`` field; called as (id, "message", data)."""
        self._dispatcher.on_message = handler

    def add_event_listener(self, name: str, handler: EventHandler) -> None:
        self._dispatcher.add_event_listener(name, handler)

    def remove_event_listener(self, name: str) -> None:
        self._dispatcher.remove_event_listener(name)

    def event_names(self) -> list[str]:
        return self._dispatcher.event_names()

    @staticmethod
    def basic_auth(username: str, password: str) -> str:
        """Authorization header value for HTTP basic auth."""
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    # -- transport callbacks -----------------------------------------------

    def _handle_headers(self, handle: StreamHandle, status_code: int) -> bool:
        if handle is not self._handle or self._state.ready_state is not ReadyState.CONNECTING:
            return False

        if status_code == 204:
            log.info("stream_no_content", source=self.url)
            self.close()
            return False

        self._set_state(ReadyState.OPEN, f"status={status_code}")
        if self._on_open is not None:
            self._executor.submit(self._on_open)
        return True

    async def _handle_data(self, handle: StreamHandle, chunk: bytes) -> None:
        if handle is not self._handle or self._state.ready_state is not ReadyState.OPEN:
            return
        blocks = self._framer.feed(chunk)
        if blocks:
            await self._dispatcher.dispatch_blocks(blocks, is_active=lambda: handle is self._handle)

    def _handle_complete(self, handle: StreamHandle, error: BaseException | None) -> None:
        if handle is not self._handle:
            return
        self._handle = None
        status = handle.status_code

        if status == 204:
            self.close()
            return

        if self._state.ready_state is not ReadyState.CLOSED:
            self._set_state(ReadyState.CLOSED, "stream_complete")

        if isinstance(error, StreamCancelled):
            return

        if status is not None and status >= 400:
            self._report_error(HTTPStatusError(status))
            if not self.config.reconnect_on_http_error:
                return
        else:
            self._report_error(_connection_lost(error))

        self._schedule_reconnect()

    # -- internals ---------------------------------------------------------

    def _request_headers(self, last_event_id: str | None) -> dict[str, str]:
        fixed = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if last_event_id is not None:
            fixed["Last-Event-Id"] = last_event_id
        replaced = {name.lower() for name in fixed}
        headers = {k: v for k, v in self._headers.items() if k.lower() not in replaced}
        headers.update(fixed)
        return headers

    def _set_state(self, target: ReadyState, trigger: str) -> None:
        self._state.ready_state = transition(self._state.ready_state, target, self.url, trigger)

    def _drop_transport(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _report_error(self, error: EventSourceError) -> None:
        log.warning("stream_error", source=self.url, error=str(error))
        if self._on_error is not None:
            self._executor.submit(self._on_error, error)
        elif self._pending_error is None:
            self._pending_error = error

    def _schedule_reconnect(self) -> None:
        delay_ms = self._state.retry_interval_ms
        log.info("reconnect_scheduled", source=self.url, delay_ms=delay_ms)
        loop = asyncio.get_running_loop()
        self._reconnect_timer = loop.call_later(delay_ms / 1000, self._reconnect)

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _reconnect(self) -> None:
        self._reconnect_timer = None
        if self._handle is not None or self._state.ready_state is not ReadyState.CLOSED:
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_attempt())

    async def _reconnect_attempt(self) -> None:
        # connect() bumps the generation before its first await
        generation = self._generation + 1
        try:
            await self.connect()
        except Exception as exc:
            log.exception("reconnect_failed", source=self.url)
            if generation != self._generation or self._handle is not None:
                return
            if self._state.ready_state is not ReadyState.CLOSED:
                self._set_state(ReadyState.CLOSED, "reconnect_failed")
            self._report_error(_connection_lost(exc))
            self._schedule_reconnect()


class _StreamDelegate:
    """TransportDelegate that forwards to the owning EventSource."""

    def __init__(self, source: EventSource) -> None:
        self._source = source

    def on_headers(self, handle: StreamHandle, status_code: int) -> bool:
        return self._source._handle_headers(handle, status_code)

    async def on_data(self, handle: StreamHandle, chunk: bytes) -> None:
        await self._source._handle_data(handle, chunk)

    def on_complete(self, handle: StreamHandle, error: BaseException | None) -> None:
        self._source._handle_complete(handle, error)


def _connection_lost(error: BaseException | None) -> ConnectionLostError:
    if error is None:
        return ConnectionLostError("Stream ended by server")
    lost = ConnectionLostError(f"Connection lost: {error!r}")
    lost.__cause__ = error
    return lost
