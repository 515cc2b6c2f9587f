"""Server-sent event fan-out for debate events."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from debate_engine.types import DebateEventType

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


def format_sse(event: str, data: dict[str, Any]) -> str:
    """Serialize one SSE frame."""
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


class SSEBroadcaster:
    """Pushes debate events onto bounded per-subscriber queues.

    broadcast() never blocks and never raises: when a subscriber's queue is
    full the event is dropped for that subscriber only.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._subscribers: dict[str, list[asyncio.Queue[dict[str, Any]]]] = {}

    def subscribe(self, debate_id: str) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(debate_id, []).append(queue)
        logger.debug(f"New subscriber for debate {debate_id}")
        return queue

    def unsubscribe(self, debate_id: str, queue: asyncio.Queue[dict[str, Any]]) -> None:
        queues = self._subscribers.get(debate_id)
        if queues and queue in queues:
            queues.remove(queue)
            if not queues:
                del self._subscribers[debate_id]

    def subscriber_count(self, debate_id: str) -> int:
        return len(self._subscribers.get(debate_id, []))

    def broadcast(self, debate_id: str, event_type: DebateEventType, payload: dict[str, Any]) -> None:
        message = {
            "type": event_type.value,
            "debate_id": debate_id,
            "timestamp": datetime.now().isoformat(),
            "data": payload,
        }
        for queue in list(self._subscribers.get(debate_id, [])):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full for debate {debate_id}, dropped {event_type.value}")

    async def stream(
        self, debate_id: str, keepalive_seconds: float = KEEPALIVE_SECONDS
    ) -> AsyncIterator[str]:
        """Yield SSE frames for one subscriber until the client disconnects."""
        queue = self.subscribe(debate_id)
        try:
            yield format_sse("connected", {"debate_id": debate_id})
            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
                except TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield format_sse(message["type"], message)
                if message["type"] in (
                    DebateEventType.DEBATE_COMPLETE.value,
                    DebateEventType.DEBATE_STOPPED.value,
                    DebateEventType.ERROR.value,
                ):
                    break
        finally:
            self.unsubscribe(debate_id, queue)
