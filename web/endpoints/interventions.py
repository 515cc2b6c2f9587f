"""Audience intervention endpoints."""

import logging

from fastapi import APIRouter, Depends

from debate_engine.types import InterventionStatus, InterventionType, Speaker
from web.debate_manager import DebateManager
from web.endpoints.debates import setup_debate_manager
from web.http_errors import to_http_exception
from web.intervention_request import InterventionRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.post("/debates/{debate_id}/interventions", status_code=201)
async def submit_intervention(
    debate_id: str,
    request: InterventionRequest,
    manager: DebateManager = Depends(setup_debate_manager),
):
    """Queue an intervention for the debate."""
    try:
        intervention = await manager.submit_intervention(debate_id, request.to_input())
        return intervention.to_dict()
    except Exception as e:
        raise to_http_exception(e)


@router.get("/debates/{debate_id}/interventions")
async def list_interventions(
    debate_id: str,
    status: InterventionStatus | None = None,
    intervention_type: InterventionType | None = None,
    directed_to: Speaker | None = None,
    manager: DebateManager = Depends(setup_debate_manager),
):
    try:
        interventions = await manager.list_interventions(debate_id, status, intervention_type, directed_to)
        return {"interventions": [i.to_dict() for i in interventions], "count": len(interventions)}
    except Exception as e:
        raise to_http_exception(e)
