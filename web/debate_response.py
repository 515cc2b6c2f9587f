from typing import Any

from pydantic import BaseModel


class DebateResponse(BaseModel):
    """Response model for debate information."""

    id: str
    proposition: str
    format: str
    status: str
    current_phase: str
    previous_phase: str | None = None
    current_speaker: str
    is_paused: bool = False
    total_elapsed_ms: int = 0
    utterance_count: int = 0
    flow_mode: str = "auto"
    lively: bool = False
    error: str | None = None
    # Turn position within the current phase
    progress: dict[str, Any] | None = None
