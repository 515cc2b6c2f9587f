"""Model and provider endpoints."""

import logging

from fastapi import HTTPException, APIRouter, Depends

from models.manager import ModelManager
from models.providers import ProviderFactory
from web.debate_manager import DebateManager
from web.endpoints.debates import setup_debate_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/models")
async def get_models(manager: DebateManager = Depends(setup_debate_manager)):
    """Get available models grouped by provider."""
    try:
        model_manager = ModelManager(manager.config.system)
        models_by_provider = await model_manager.get_available_models()
        return {
            "models_by_provider": models_by_provider,
            "configured_roles": {
                role: model.model_dump(mode="json") for role, model in manager.config.models.items()
            },
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/providers")
async def get_providers():
    """List the provider names a model config may use."""
    return {"providers": ProviderFactory.get_available_providers()}
