"""Data models for the debate engine."""

from typing import Any
from dataclasses import dataclass, field
from datetime import datetime

from .types import (
    DebatePhase,
    InterruptionOutcome,
    InterruptSource,
    InterventionStatus,
    InterventionType,
    PromptType,
    Speaker,
    TransitionKind,
)


@dataclass
class DebateState:
    """Snapshot of a debate's phase and timing state."""

    debate_id: str
    current_phase: DebatePhase = DebatePhase.INITIALIZING
    previous_phase: DebatePhase | None = None
    current_speaker: Speaker = Speaker.SYSTEM
    phase_start_time: datetime | None = field(default_factory=datetime.now)
    total_elapsed_ms: int = 0
    is_paused: bool = False
    paused_at: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "debate_id": self.debate_id,
            "current_phase": self.current_phase.value,
            "previous_phase": self.previous_phase.value if self.previous_phase else None,
            "current_speaker": self.current_speaker.value,
            "phase_start_time": (
                self.phase_start_time.isoformat() if self.phase_start_time else None
            ),
            "total_elapsed_ms": self.total_elapsed_ms,
            "is_paused": self.is_paused,
            "paused_at": self.paused_at.isoformat() if self.paused_at else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class Turn:
    """One scheduled speaking opportunity within a phase."""

    phase: DebatePhase
    turn_number: int
    speaker: Speaker
    prompt_type: PromptType
    responds_to: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def turn_id(self) -> str:
        """Stable identity used to avoid running the same turn twice."""
        return (
            f"{self.phase.value}:{self.speaker.value}:"
            f"{self.turn_number}:{self.prompt_type.value}"
        )


@dataclass
class Utterance:
    """A single persisted unit of debate content."""

    debate_id: str
    timestamp_ms: int
    phase: DebatePhase
    speaker: Speaker
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "debate_id": self.debate_id,
            "timestamp_ms": self.timestamp_ms,
            "phase": self.phase.value,
            "speaker": self.speaker.value,
            "content": self.content,
            "metadata": self.metadata,
        }


@dataclass
class InterventionInput:
    """User-submitted intervention before it is stored."""

    intervention_type: InterventionType
    content: str
    directed_to: Speaker | None = None


@dataclass
class Intervention:
    """A user intervention and its (eventual) response."""

    id: int
    debate_id: str
    timestamp_ms: int
    intervention_type: InterventionType
    content: str
    directed_to: Speaker | None = None
    response: str | None = None
    response_timestamp_ms: int | None = None
    status: InterventionStatus = InterventionStatus.QUEUED

    @property
    def is_answered(self) -> bool:
        return self.response is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "debate_id": self.debate_id,
            "timestamp_ms": self.timestamp_ms,
            "intervention_type": self.intervention_type.value,
            "content": self.content,
            "directed_to": self.directed_to.value if self.directed_to else None,
            "response": self.response,
            "response_timestamp_ms": self.response_timestamp_ms,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class PhaseTransitionEvent:
    """Emitted by the state machine on every state change."""

    debate_id: str
    kind: TransitionKind
    from_phase: DebatePhase
    to_phase: DebatePhase
    speaker: Speaker
    timestamp: datetime
    phase_elapsed_ms: int
    total_elapsed_ms: int
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "from_phase": self.from_phase.value,
            "to_phase": self.to_phase.value,
            "speaker": self.speaker.value,
            "timestamp": self.timestamp.isoformat(),
            "phase_elapsed_ms": self.phase_elapsed_ms,
            "total_elapsed_ms": self.total_elapsed_ms,
            "error": self.error,
        }


@dataclass
class InterruptionRecord:
    """Audit record of one interruption evaluation, accepted or not."""

    id: str
    debate_id: str
    requested_at_ms: int
    phase: DebatePhase
    interrupter: Speaker
    interrupted_speaker: Speaker
    source: InterruptSource
    content: str
    outcome: InterruptionOutcome
    score: float | None = None
    relevance: float | None = None
    contradiction: float | None = None
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.outcome is InterruptionOutcome.ACCEPTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "debate_id": self.debate_id,
            "requested_at_ms": self.requested_at_ms,
            "phase": self.phase.value,
            "interrupter": self.interrupter.value,
            "interrupted_speaker": self.interrupted_speaker.value,
            "source": self.source.value,
            "content": self.content,
            "outcome": self.outcome.value,
            "score": self.score,
            "relevance": self.relevance,
            "contradiction": self.contradiction,
            "reason": self.reason,
        }
