from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from config.settings import LIVELY_PRESETS, ModelConfig, REQUIRED_ROLES


class DebateSetupRequest(BaseModel):
    """Request model for starting a new debate."""

    proposition: str
    format: str = "standard"
    word_limit: int = Field(default=250, ge=20, le=2000)
    flow_mode: Literal["auto", "step"] = "auto"
    models: dict[str, ModelConfig] | None = None
    lively: bool = False
    lively_preset: str | None = None
    lively_settings: dict[str, Any] | None = None

    @field_validator("proposition")
    @classmethod
    def validate_proposition(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Proposition must not be empty")
        return v

    @field_validator("models")
    @classmethod
    def validate_models(cls, v):
        """Every debate role needs a model when models are given."""
        if v is None:
            return v
        missing = [role for role in REQUIRED_ROLES if role not in v]
        if missing:
            raise ValueError(f"Models missing for roles: {missing}")
        return v

    @field_validator("lively_preset")
    @classmethod
    def validate_preset(cls, v):
        if v is not None and v not in LIVELY_PRESETS:
            raise ValueError(f"Unknown preset: {v}. Available: {list(LIVELY_PRESETS.keys())}")
        return v
