from pydantic import BaseModel, Field, field_validator

from debate_engine.interventions import MAX_CONTENT_LENGTH
from debate_engine.models import InterventionInput
from debate_engine.types import InterventionType, Speaker


class InterventionRequest(BaseModel):
    """Request model for submitting an audience intervention."""

    intervention_type: InterventionType
    content: str = Field(..., max_length=MAX_CONTENT_LENGTH)
    directed_to: Speaker | None = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Intervention content must not be empty")
        return v

    @field_validator("directed_to")
    @classmethod
    def validate_directed_to(cls, v):
        if v is Speaker.SYSTEM:
            raise ValueError("Interventions cannot be directed at the system")
        return v

    def to_input(self) -> InterventionInput:
        return InterventionInput(
            intervention_type=self.intervention_type,
            content=self.content,
            directed_to=self.directed_to,
        )
