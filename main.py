#!/usr/bin/env python3
"""Main entry point for the Agora debate engine."""

import asyncio
import logging
import os
import sys

from config.settings import AppConfig, get_default_config


def setup_logging(level: str = "INFO"):
    """Configure logging for the server and headless runs."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Suppress noisy third-party loggers
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def print_usage():
    """Print usage information for local development."""

    print("Agora Debate Engine")
    print("=" * 40)
    print("Available entry points:")
    print()
    print("Web server (REST API + server-sent events):")
    print("   python main.py --web")
    print()
    print("Headless debate using debate_config.json, transcript printed at the end:")
    print("   python main.py --run")
    print("   python main.py --run --lively")
    print()


def start_web_server():
    """Start the FastAPI web server."""
    import uvicorn

    from web.api import app

    port = int(os.environ.get("PORT", 8000))

    print("Starting Agora Debate Engine web server...")
    print(f"API documentation: http://localhost:{port}/docs")
    print(f"Event stream: http://localhost:{port}/v1/api/debates/{{id}}/events")

    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info", access_log=True)


async def run_headless(config: AppConfig, lively: bool) -> int:
    """Run one debate to completion without the web layer and print its transcript."""
    from debate_engine.transcript import format_transcript_text
    from web.debate_manager import DebateManager
    from web.debate_setup_request import DebateSetupRequest

    manager = DebateManager(config)
    setup = DebateSetupRequest(
        proposition=config.debate.proposition,
        format=config.debate.format,
        word_limit=config.debate.word_limit,
        lively=lively or config.debate.lively,
    )
    session = await manager.start_debate(setup)
    try:
        if session.task is not None:
            await session.task
    except (KeyboardInterrupt, asyncio.CancelledError):
        await manager.stop(session.debate_id, "interrupted from console")

    document = await manager.get_transcript(session.debate_id)
    print(format_transcript_text(document))
    return 0 if document["final_state"]["error"] is None else 1


def main():
    """Main entry point."""
    # Check for production environment (Railway, Docker, Heroku, etc.)
    is_production = any([
        "PORT" in os.environ,
        os.environ.get("ENVIRONMENT") == "production",
    ])

    if "--run" in sys.argv:
        config = get_default_config()
        setup_logging(config.system.log_level)
        sys.exit(asyncio.run(run_headless(config, "--lively" in sys.argv)))

    if is_production or "--web" in sys.argv:
        setup_logging()
        start_web_server()
    else:
        print_usage()


if __name__ == "__main__":
    main()
