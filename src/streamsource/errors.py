"""Errors surfaced to EventSource error handlers."""

from __future__ import annotations


class EventSourceError(Exception):
    """Base class for errors reported by an EventSource."""


class HTTPStatusError(EventSourceError):
    """The server answered the stream request with status >= 400."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP Status Code: {status_code}")


class ConnectionLostError(EventSourceError):
    """The stream ended or the transport failed; a reconnect will follow."""


class StreamCancelled(EventSourceError):
    """Completion marker for a transport cancelled by close().

    Never delivered to application handlers.
    """
