"""FastAPI web application for the Agora debate engine."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from web.debate_manager import DebateManager

from web.endpoints.debates import router as debates_router
from web.endpoints.interventions import router as interventions_router
from web.endpoints.lively import router as lively_router
from web.endpoints.models import router as models_router
from web.endpoints.system import router as system_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]  # Outputs to console
)

logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

logger: logging.Logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the debate manager on startup and stop running debates on shutdown."""
    if getattr(app.state, "debate_manager", None) is None:
        from config.settings import get_default_config

        config = get_default_config()
        logging.getLogger().setLevel(config.system.log_level)
        app.state.debate_manager = DebateManager(config)

    yield

    manager: DebateManager = app.state.debate_manager
    await manager.shutdown()
    logger.info("Debate manager shut down")


def get_allowed_origins() -> list[str] | None:
    """Get CORS origins from environment or use development defaults."""
    env_origins: str | None = os.environ.get("ALLOWED_ORIGINS")
    if env_origins:
        origins = [origin.strip() for origin in env_origins.split(",")]
        return origins
    return None


def create_app(debate_manager: DebateManager | None = None) -> FastAPI:
    """Build the application; pass a manager to bypass config-file loading."""
    app = FastAPI(
        title="Agora Debate Engine",
        description="Multi-agent structured debates with live audience interventions",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.debate_manager = debate_manager

    allowed_origins = get_allowed_origins()
    if allowed_origins:
        logger.info(f"Setting CORS allowed origins: {allowed_origins}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logger.info("No ALLOWED_ORIGINS set, using development CORS settings")
        # Development: Allow any localhost/127.0.0.1
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(system_router, prefix="/v1")
    app.include_router(models_router, prefix="/v1")
    app.include_router(debates_router, prefix="/v1")
    app.include_router(interventions_router, prefix="/v1")
    app.include_router(lively_router, prefix="/v1")
    return app


app: FastAPI = create_app()
