"""httpx-backed transport: one streaming GET per StreamHandle."""

from __future__ import annotations

import asyncio

import httpx
import structlog

from streamsource.errors import StreamCancelled

from .base import StreamHandle, TransportDelegate

log = structlog.get_logger()


class HttpxTransport:
    """Opens event streams with ``httpx.AsyncClient.stream``.

    Reads never time out: an event stream may stay idle indefinitely
    between events. Only connecting is bounded.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        connect_timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(follow_redirects=True)
        self._timeout = httpx.Timeout(connect_timeout, read=None)

    def open(self, url: str, headers: dict[str, str], delegate: TransportDelegate) -> StreamHandle:
        handle = StreamHandle(url)
        handle.task = asyncio.get_running_loop().create_task(
            self._run(handle, headers, delegate)
        )
        return handle

    async def _run(
        self,
        handle: StreamHandle,
        headers: dict[str, str],
        delegate: TransportDelegate,
    ) -> None:
        error: BaseException | None = None
        try:
            async with self._client.stream(
                "GET",
                handle.url,
                headers=headers,
                timeout=self._timeout,
            ) as response:
                handle.status_code = response.status_code
                log.debug("stream_response", url=handle.url, status=response.status_code)
                if delegate.on_headers(handle, response.status_code):
                    async for chunk in response.aiter_bytes():
                        await delegate.on_data(handle, chunk)
        except asyncio.CancelledError:
            delegate.on_complete(handle, StreamCancelled())
            raise
        except httpx.HTTPError as exc:
            log.debug("stream_transport_error", url=handle.url, error=str(exc))
            error = exc
        except Exception as exc:
            # Raised by the delegate's data path (store writes) or by httpx outside HTTPError
            log.exception("stream_run_failed", url=handle.url)
            error = exc
        delegate.on_complete(handle, error)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
