"""Debate lifecycle, state, transcript and event stream endpoints."""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, StreamingResponse

from debate_engine.transcript import format_transcript_text
from web.debate_manager import DebateManager
from web.debate_response import DebateResponse
from web.debate_setup_request import DebateSetupRequest
from web.http_errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def setup_debate_manager(request: Request) -> DebateManager:
    """Get the debate manager created at startup."""
    return request.app.state.debate_manager


def _debate_response(info: dict[str, Any]) -> DebateResponse:
    record = info["record"]
    state = info["state"]
    progress = info["progress"]
    status = "running" if info["is_running"] else "stopped"
    if state.is_paused:
        status = "paused"
    elif state.current_phase.is_terminal:
        status = state.current_phase.value
    return DebateResponse(
        id=record["id"],
        proposition=record["proposition"],
        format=record["format"],
        status=status,
        current_phase=state.current_phase.value,
        previous_phase=state.previous_phase.value if state.previous_phase else None,
        current_speaker=state.current_speaker.value,
        is_paused=state.is_paused,
        total_elapsed_ms=state.total_elapsed_ms,
        utterance_count=info["utterance_count"],
        flow_mode=info["flow_mode"],
        lively=record["lively"],
        error=state.error,
        progress={**asdict(progress), "phase": progress.phase.value, "percentage": progress.percentage}
        if progress
        else None,
    )


@router.post("/debates", response_model=DebateResponse)
async def start_debate(setup: DebateSetupRequest, manager: DebateManager = Depends(setup_debate_manager)):
    """Start a new debate; it runs in the background."""
    try:
        session = await manager.start_debate(setup)
        return _debate_response(await manager.get_state(session.debate_id))
    except Exception as e:
        raise to_http_exception(e)


@router.get("/debates/{debate_id}", response_model=DebateResponse)
async def get_debate(debate_id: str, manager: DebateManager = Depends(setup_debate_manager)):
    """Get debate state; works for finished debates too."""
    try:
        return _debate_response(await manager.get_state(debate_id))
    except Exception as e:
        raise to_http_exception(e)


@router.post("/debates/{debate_id}/pause")
async def pause_debate(debate_id: str, manager: DebateManager = Depends(setup_debate_manager)):
    try:
        state = await manager.pause(debate_id)
        return {"status": "paused", "state": state.to_dict()}
    except Exception as e:
        raise to_http_exception(e)


@router.post("/debates/{debate_id}/resume")
async def resume_debate(debate_id: str, manager: DebateManager = Depends(setup_debate_manager)):
    try:
        state = await manager.resume(debate_id)
        return {"status": "resumed", "state": state.to_dict()}
    except Exception as e:
        raise to_http_exception(e)


@router.post("/debates/{debate_id}/stop")
async def stop_debate(debate_id: str, manager: DebateManager = Depends(setup_debate_manager)):
    try:
        state = await manager.stop(debate_id)
        return {"status": "stopped", "state": state.to_dict()}
    except Exception as e:
        raise to_http_exception(e)


@router.post("/debates/{debate_id}/utterances/{utterance_id}/regenerate")
async def regenerate_utterance(
    debate_id: str, utterance_id: int, manager: DebateManager = Depends(setup_debate_manager)
):
    """Re-run the agent for one utterance; the debate must be paused."""
    try:
        utterance = await manager.regenerate(debate_id, utterance_id)
        return utterance.to_dict()
    except Exception as e:
        raise to_http_exception(e)


@router.get("/debates/{debate_id}/transcript")
async def get_transcript(
    debate_id: str, format: str = "json", manager: DebateManager = Depends(setup_debate_manager)
):
    """Get the transcript as a JSON document or, with format=text, as plain text."""
    if format not in ("json", "text"):
        raise HTTPException(status_code=400, detail=f"Unknown transcript format: {format}")
    try:
        document = await manager.get_transcript(debate_id)
    except Exception as e:
        raise to_http_exception(e)
    if format == "text":
        return PlainTextResponse(format_transcript_text(document))
    return document


@router.get("/debates/{debate_id}/events")
async def stream_events(debate_id: str, manager: DebateManager = Depends(setup_debate_manager)):
    """Server-sent event stream of one debate's events."""
    try:
        await manager.get_state(debate_id)
    except Exception as e:
        raise to_http_exception(e)
    response = StreamingResponse(manager.broadcaster.stream(debate_id), media_type="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response
