"""System health and format endpoints."""

import logging

from fastapi import APIRouter, Depends

from formats import format_registry
from web.debate_manager import DebateManager
from web.endpoints.debates import setup_debate_manager
from web.http_errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check(manager: DebateManager = Depends(setup_debate_manager)):
    """Health check endpoint to verify API is running."""
    return {"isAlive": True, "active_debates": len(manager.registry.running_ids())}


@router.get("/formats")
async def get_formats():
    """Get available debate formats."""
    return {"formats": format_registry.get_format_descriptions()}


@router.get("/formats/{format_name}/phases")
async def get_format_phases(format_name: str):
    """Phase table of one format: duration, speakers and turns per speaker."""
    try:
        debate_format = format_registry.get_format(format_name)
    except ValueError as e:
        raise to_http_exception(e)
    phases = []
    for phase in debate_format.get_phases():
        metadata = debate_format.get_phase_metadata(phase)
        phases.append(
            {
                "phase": phase.value,
                "name": metadata.name,
                "duration_minutes": metadata.duration_minutes,
                "allowed_speakers": [s.value for s in metadata.allowed_speakers],
                "turns_per_speaker": metadata.turns_per_speaker,
            }
        )
    return {"format": format_name, "phases": phases}
