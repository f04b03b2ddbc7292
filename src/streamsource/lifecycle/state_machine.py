"""Ready-state machine for one subscription.

CLOSED ──[connect()]──→ CONNECTING ──[headers, status != 204]──→ OPEN
  ↑                         │                                      │
  │                  [204 / failure / close()]          [stream end / error /
  │                         │                            204 / close()]
  └─────────────────────────┴──────────────────────────────────────┘

A scheduled reconnect is simply CLOSED → CONNECTING again, carrying the
newest last event id.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import structlog

log = structlog.get_logger()

DEFAULT_RETRY_INTERVAL_MS = 3000


class ReadyState(enum.Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


VALID_TRANSITIONS: set[tuple[ReadyState, ReadyState]] = {
    (ReadyState.CLOSED, ReadyState.CONNECTING),
    (ReadyState.CONNECTING, ReadyState.OPEN),
    (ReadyState.CONNECTING, ReadyState.CLOSED),
    (ReadyState.OPEN, ReadyState.CLOSED),
}


class InvalidTransition(Exception):
    """Raised when an invalid ready-state transition is attempted."""

    def __init__(self, from_state: ReadyState, to_state: ReadyState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} → {to_state.value}")


def validate_transition(from_state: ReadyState, to_state: ReadyState) -> None:
    """Validate a transition, raising InvalidTransition if not allowed."""
    if (from_state, to_state) not in VALID_TRANSITIONS:
        raise InvalidTransition(from_state, to_state)


def transition(
    current: ReadyState,
    target: ReadyState,
    source: str,
    trigger: str = "",
) -> ReadyState:
    """Execute a validated transition, logging the change."""
    validate_transition(current, target)
    log.info(
        "ready_state_transition",
        source=source,
        from_state=current.value,
        to_state=target.value,
        trigger=trigger,
    )
    return target


@dataclass
class SubscriptionState:
    """Mutable per-subscription state shared by the lifecycle and its dispatcher."""

    ready_state: ReadyState = ReadyState.CLOSED
    retry_interval_ms: int = DEFAULT_RETRY_INTERVAL_MS
    # Cached copy of the persisted id, refreshed on every connect
    last_event_id: str | None = None
