"""Last-event-id store interface and the in-memory implementation."""

from __future__ import annotations

from typing import Protocol


class LastEventIdStore(Protocol):
    """Key-value cell holding the newest event id per subscription."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Dict-backed store; ids are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value
