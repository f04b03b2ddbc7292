"""Transport seam between the EventSource and an HTTP client."""

from __future__ import annotations

import asyncio
from typing import Protocol


class StreamHandle:
    """One in-flight stream request.

    The EventSource compares handles by identity: callbacks carrying a handle
    other than the current one belong to a replaced or closed connection.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.status_code: int | None = None
        self.task: asyncio.Task[None] | None = None

    def cancel(self) -> None:
        if self.task is not None and not self.task.done():
            self.task.cancel()


class TransportDelegate(Protocol):
    def on_headers(self, handle: StreamHandle, status_code: int) -> bool:
        """Response headers arrived. Return False to stop reading the body."""
        ...

    async def on_data(self, handle: StreamHandle, chunk: bytes) -> None: ...

    def on_complete(self, handle: StreamHandle, error: BaseException | None) -> None:
        """The stream ended; ``error`` is None for a clean end of body."""
        ...


class Transport(Protocol):
    def open(self, url: str, headers: dict[str, str], delegate: TransportDelegate) -> StreamHandle: ...
