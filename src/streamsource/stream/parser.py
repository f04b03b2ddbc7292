"""SSE field grammar: parse one event block into an EventRecord.

Each line of a block is ``key: value``, ``key:value`` or a bare ``key``.
Lines starting with ``:`` are comments. Unknown keys are ignored so newer
servers can add fields without breaking older clients.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_LINE_SPLIT = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class EventRecord:
    """Structured result of one event block. ``None`` means the field was absent."""

    id: str | None = None
    event_type: str | None = None
    data: str | None = None
    retry: int | None = None


def parse_field(line: str) -> tuple[str, str]:
    """Split a field line on its first colon, dropping one leading space from the value.

    A line with no colon is a key with an empty value, which is not the same
    as the key being absent.
    """
    if ":" not in line:
        return line, ""
    key, _, value = line.partition(":")
    if value.startswith(" "):
        value = value[1:]
    return key, value


def parse_block(block: str) -> EventRecord:
    """Parse an event block. Last value wins except for ``data``, which accumulates."""
    event_id: str | None = None
    event_type: str | None = None
    data_lines: list[str] = []
    retry: int | None = None

    for line in _LINE_SPLIT.split(block):
        if not line or line.startswith(":"):
            continue

        key, value = parse_field(line)
        if key == "data":
            data_lines.append(value)
        elif key == "id":
            event_id = value
        elif key == "event":
            event_type = value
        elif key == "retry":
            # Only plain digits count; "-5" or "1e3" leave the previous value.
            if value.isascii() and value.isdigit():
                retry = int(value)

    return EventRecord(
        id=event_id,
        event_type=event_type,
        data="\n".join(data_lines) if data_lines else None,
        retry=retry,
    )


class EventParser:
    """Stateless parser; a class so it can be swapped in a Dispatcher."""

    def parse(self, block: str) -> EventRecord:
        return parse_block(block)
