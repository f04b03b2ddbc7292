"""Byte framing: split a raw SSE byte stream into event blocks.

An event block is the text between two blank-line delimiters. All three
newline conventions are accepted, and a stream may mix them::

    b"\\n\\n"    b"\\r\\r"    b"\\r\\n\\r\\n"
"""

from __future__ import annotations

import structlog

log = structlog.get_logger()

DELIMITERS: tuple[bytes, ...] = (b"\r\n\r\n", b"\n\n", b"\r\r")

# A delimiter can straddle two feeds by at most this many bytes.
_MAX_DELIMITER_OVERLAP = max(len(d) for d in DELIMITERS) - 1


class ByteFramer:
    """Accumulates transport bytes and emits complete event blocks in order."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        # Offset up to which the buffer is known to hold no delimiter
        self._scan_from = 0

    def __len__(self) -> int:
        return len(self._buffer)

    def reset(self) -> None:
        """Drop any partial block, e.g. when a new connection starts."""
        self._buffer.clear()
        self._scan_from = 0

    def feed(self, chunk: bytes) -> list[str]:
        """Append a chunk and return every block it completed."""
        if not chunk:
            return []
        self._buffer.extend(chunk)

        blocks: list[str] = []
        start = 0
        search_from = self._scan_from
        while True:
            match = self._find_delimiter(search_from)
            if match is None:
                break
            begin, end = match
            raw = bytes(self._buffer[start:begin])
            try:
                blocks.append(raw.decode("utf-8"))
            except UnicodeDecodeError:
                log.debug("sse_block_undecodable", size=len(raw))
            start = search_from = end

        if start:
            del self._buffer[:start]
        self._scan_from = max(0, len(self._buffer) - _MAX_DELIMITER_OVERLAP)
        return blocks

    def _find_delimiter(self, search_from: int) -> tuple[int, int] | None:
        """Earliest delimiter at or after ``search_from`` as (begin, end), or None."""
        best: tuple[int, int] | None = None
        for delimiter in DELIMITERS:
            pos = self._buffer.find(delimiter, search_from)
            if pos == -1:
                continue
            if best is None or pos < best[0]:
                best = (pos, pos + len(delimiter))
        return best
