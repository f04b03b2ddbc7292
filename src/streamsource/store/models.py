"""Database table definitions and dataclass row types."""

from __future__ import annotations

from dataclasses import dataclass

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS last_event_ids (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL NOT NULL
);
"""


@dataclass
class LastEventIdRow:
    key: str
    value: str
    updated_at: float
