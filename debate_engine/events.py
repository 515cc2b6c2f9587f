"""Event broadcasting contract."""

import logging
from typing import Any, Protocol

from .types import DebateEventType

logger = logging.getLogger(__name__)


class EventBroadcaster(Protocol):
    """Best-effort, non-blocking fan-out of debate events to clients."""

    def broadcast(self, debate_id: str, event_type: DebateEventType, payload: dict[str, Any]) -> None: ...


class NullBroadcaster:
    """Broadcaster that only logs, for headless runs."""

    def broadcast(self, debate_id: str, event_type: DebateEventType, payload: dict[str, Any]) -> None:
        logger.debug("Debate %s event %s", debate_id, event_type.value)


def safe_broadcast(
    broadcaster: EventBroadcaster,
    debate_id: str,
    event_type: DebateEventType,
    payload: dict[str, Any],
) -> None:
    """Broadcast without ever raising; failures are logged and dropped."""
    try:
        broadcaster.broadcast(debate_id, event_type, payload)
    except Exception as e:
        logger.warning(f"Broadcast of {event_type.value} for debate {debate_id} failed: {e}")
