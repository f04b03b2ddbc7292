"""Event dispatch: route parsed records to application handlers.

Owns the listener registry. For each record, in arrival order:

1. a ``retry`` value replaces the reconnect interval,
2. an ``id`` is persisted before anything else happens,
3. data without an event type goes to the message handler as ``"message"``,
4. data with an event type goes to the listener registered for that name.

Handlers are submitted to the callback executor, never called inline.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

import structlog

from streamsource.lifecycle.state_machine import SubscriptionState
from streamsource.store.memory import LastEventIdStore

from .executor import CallbackExecutor
from .parser import EventParser, EventRecord

log = structlog.get_logger()

EventHandler = Callable[[str | None, str, str], Any]


class Dispatcher:
    """Turns event blocks into state updates and handler invocations."""

    def __init__(
        self,
        state: SubscriptionState,
        store: LastEventIdStore,
        store_key: str,
        executor: CallbackExecutor,
        parser: EventParser | None = None,
        source: str = "",
    ) -> None:
        self.state = state
        self.on_message: EventHandler | None = None
        self._store = store
        self._store_key = store_key
        self._executor = executor
        self._parser = parser if parser is not None else EventParser()
        self._listeners: dict[str, EventHandler] = {}
        self._source = source

    # -- listener registry -------------------------------------------------

    def add_event_listener(self, name: str, handler: EventHandler) -> None:
        self._listeners[name] = handler

    def remove_event_listener(self, name: str) -> None:
        self._listeners.pop(name, None)

    def event_names(self) -> list[str]:
        return list(self._listeners)

    # -- dispatch ----------------------------------------------------------

    def records_from_blocks(self, blocks: Iterable[str]) -> list[EventRecord]:
        """Parse blocks, skipping blank and comment-only ones without parsing them."""
        records: list[EventRecord] = []
        for block in blocks:
            if not block or block.startswith(":"):
                continue
            records.append(self._parser.parse(block))
        return records

    async def process(
        self,
        records: Iterable[EventRecord],
        is_active: Callable[[], bool] | None = None,
    ) -> None:
        """Apply records in order. Stops as soon as ``is_active`` turns false."""
        for record in records:
            if is_active is not None and not is_active():
                return

            if record.retry is not None:
                self.state.retry_interval_ms = record.retry
                log.debug("retry_interval_updated", source=self._source, retry_ms=record.retry)

            if record.id is not None:
                self.state.last_event_id = record.id
                await self._store.set(self._store_key, record.id)
                if is_active is not None and not is_active():
                    return

            if record.data is None:
                continue

            if record.event_type is None:
                if self.on_message is not None:
                    self._executor.submit(self.on_message, record.id, "message", record.data)
                continue

            handler = self._listeners.get(record.event_type)
            if handler is not None:
                self._executor.submit(handler, record.id, record.event_type, record.data)
            else:
                log.debug("event_unhandled", source=self._source, event_type=record.event_type)

    async def dispatch_blocks(
        self,
        blocks: Iterable[str],
        is_active: Callable[[], bool] | None = None,
    ) -> None:
        await self.process(self.records_from_blocks(blocks), is_active)
