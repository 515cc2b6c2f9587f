"""Lively mode endpoints: presets, settings and interruption history."""

import logging

from fastapi import APIRouter, Depends

from debate_engine.types import InterruptionOutcome
from web.debate_manager import DebateManager
from web.endpoints.debates import setup_debate_manager
from web.http_errors import to_http_exception
from web.lively_settings_request import LivelySettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/lively/presets")
async def list_presets():
    """List the named lively presets with their settings."""
    return {
        "presets": [preset.model_dump(mode="json") for preset in DebateManager.presets()],
    }


@router.get("/debates/{debate_id}/lively/settings")
async def get_lively_settings(debate_id: str, manager: DebateManager = Depends(setup_debate_manager)):
    try:
        settings = await manager.get_lively_settings(debate_id)
        return settings.model_dump(mode="json")
    except Exception as e:
        raise to_http_exception(e)


@router.patch("/debates/{debate_id}/lively/settings")
async def update_lively_settings(
    debate_id: str,
    update: LivelySettingsUpdate,
    manager: DebateManager = Depends(setup_debate_manager),
):
    """Change settings mid-debate; they apply from the next streamed chunk."""
    try:
        settings = await manager.update_lively_settings(debate_id, update.changes(), update.preset)
        return settings.model_dump(mode="json")
    except Exception as e:
        raise to_http_exception(e)


@router.get("/debates/{debate_id}/lively/interruptions")
async def list_interruptions(
    debate_id: str,
    status: InterruptionOutcome | None = None,
    manager: DebateManager = Depends(setup_debate_manager),
):
    """Interruption evaluations, optionally filtered by outcome."""
    try:
        records = await manager.list_interruptions(debate_id, status)
        return {"interruptions": [r.to_dict() for r in records], "count": len(records)}
    except Exception as e:
        raise to_http_exception(e)
