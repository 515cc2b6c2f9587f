from pydantic import BaseModel, Field, model_validator

from config.settings import LIVELY_PRESETS
from debate_engine.types import PacingMode


class LivelySettingsUpdate(BaseModel):
    """Partial update of a running debate's lively settings."""

    preset: str | None = None
    aggression_level: int | None = Field(default=None, ge=1, le=5)
    max_interrupts_per_minute: int | None = Field(default=None, ge=0)
    interrupt_cooldown_ms: int | None = Field(default=None, ge=0)
    min_speaking_time_ms: int | None = Field(default=None, ge=0)
    relevance_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    relevance_weight: float | None = Field(default=None, ge=0.0, le=1.0)
    contradiction_boost: float | None = Field(default=None, ge=0.0, le=1.0)
    pacing_mode: PacingMode | None = None
    interjection_max_tokens: int | None = Field(default=None, gt=0)
    speech_rate_cps: float | None = Field(default=None, gt=0)
    auto_interjections: bool | None = None

    @model_validator(mode="after")
    def validate_not_empty(self) -> "LivelySettingsUpdate":
        if self.preset is not None and self.preset not in LIVELY_PRESETS:
            raise ValueError(f"Unknown preset: {self.preset}. Available: {list(LIVELY_PRESETS.keys())}")
        if not self.model_fields_set:
            raise ValueError("No settings to update")
        return self

    def changes(self) -> dict:
        """Explicitly set fields, excluding the preset name."""
        return self.model_dump(exclude_unset=True, exclude={"preset"})
