"""Tests for server-sent event fan-out."""

import asyncio
import json

from debate_engine.types import DebateEventType
from web.broadcaster import SSEBroadcaster, format_sse


def parse_frame(frame: str) -> tuple[str, dict]:
    event_line, data_line, _, _ = frame.split("\n")
    return event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))


def test_format_sse() -> None:
    assert format_sse("utterance", {"content": "Fares café"}) == (
        'event: utterance\ndata: {"content": "Fares café"}\n\n'
    )


def test_stream_delivers_events_until_debate_completes() -> None:
    async def scenario() -> None:
        broadcaster = SSEBroadcaster()
        stream = broadcaster.stream("debate-1")

        event, data = parse_frame(await anext(stream))
        assert (event, data) == ("connected", {"debate_id": "debate-1"})
        assert broadcaster.subscriber_count("debate-1") == 1

        broadcaster.broadcast("debate-1", DebateEventType.UTTERANCE, {"speaker": "pro"})
        broadcaster.broadcast("debate-2", DebateEventType.UTTERANCE, {"speaker": "con"})
        broadcaster.broadcast("debate-1", DebateEventType.DEBATE_COMPLETE, {"total_utterances": 20})

        event, data = parse_frame(await anext(stream))
        assert event == "utterance"
        assert data["debate_id"] == "debate-1"
        assert data["data"] == {"speaker": "pro"}

        event, _ = parse_frame(await anext(stream))
        assert event == "debate_complete"

        remaining = [frame async for frame in stream]
        assert remaining == []
        assert broadcaster.subscriber_count("debate-1") == 0

    asyncio.run(scenario())


def test_full_queue_drops_events_without_blocking() -> None:
    async def scenario() -> None:
        broadcaster = SSEBroadcaster(queue_size=1)
        queue = broadcaster.subscribe("debate-1")

        broadcaster.broadcast("debate-1", DebateEventType.TOKEN_CHUNK, {"chunk": "Fares "})
        broadcaster.broadcast("debate-1", DebateEventType.TOKEN_CHUNK, {"chunk": "pay "})

        assert queue.qsize() == 1
        assert queue.get_nowait()["data"] == {"chunk": "Fares "}

    asyncio.run(scenario())


def test_disconnect_unsubscribes() -> None:
    async def scenario() -> None:
        broadcaster = SSEBroadcaster()
        stream = broadcaster.stream("debate-1", keepalive_seconds=0.01)

        await anext(stream)
        assert await anext(stream) == ": keepalive\n\n"

        await stream.aclose()

        assert broadcaster.subscriber_count("debate-1") == 0

    asyncio.run(scenario())
