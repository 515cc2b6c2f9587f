"""Shared types and enums for the debate engine."""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypedDict


class DebatePhase(Enum):
    """Phases of a debate, including the special non-speaking states."""

    INITIALIZING = "initializing"
    PHASE_1_OPENING = "phase_1_opening"
    PHASE_2_CONSTRUCTIVE = "phase_2_constructive"
    PHASE_3_CROSSEXAM = "phase_3_crossexam"
    PHASE_4_REBUTTAL = "phase_4_rebuttal"
    PHASE_5_CLOSING = "phase_5_closing"
    PHASE_6_SYNTHESIS = "phase_6_synthesis"
    COMPLETED = "completed"
    PAUSED = "paused"
    ERROR = "error"

    @property
    def is_speaking_phase(self) -> bool:
        return self in SPEAKING_PHASES

    @property
    def is_terminal(self) -> bool:
        return self in (DebatePhase.COMPLETED, DebatePhase.ERROR)


SPEAKING_PHASES: tuple[DebatePhase, ...] = (
    DebatePhase.PHASE_1_OPENING,
    DebatePhase.PHASE_2_CONSTRUCTIVE,
    DebatePhase.PHASE_3_CROSSEXAM,
    DebatePhase.PHASE_4_REBUTTAL,
    DebatePhase.PHASE_5_CLOSING,
    DebatePhase.PHASE_6_SYNTHESIS,
)


class Speaker(Enum):
    """Debate participants."""

    PRO = "pro"
    CON = "con"
    MODERATOR = "moderator"
    SYSTEM = "system"

    @property
    def opponent(self) -> "Speaker":
        """Return the opposing advocate, or MODERATOR for non-advocates."""
        if self is Speaker.PRO:
            return Speaker.CON
        if self is Speaker.CON:
            return Speaker.PRO
        return Speaker.MODERATOR


class PromptType(Enum):
    """What a speaker is asked to produce on a given turn."""

    INTRODUCTION = "introduction"
    OPENING_STATEMENT = "opening_statement"
    CONSTRUCTIVE_ARGUMENT = "constructive_argument"
    CROSS_EXAM_QUESTION = "cross_exam_question"
    CROSS_EXAM_RESPONSE = "cross_exam_response"
    MODERATOR_CHECKPOINT = "moderator_checkpoint"
    REBUTTAL = "rebuttal"
    CLOSING_STATEMENT = "closing_statement"
    SYNTHESIS = "synthesis"
    INTERVENTION_RESPONSE = "intervention_response"
    INTERJECTION = "interjection"


class InterventionType(Enum):
    """Kinds of user-submitted interventions."""

    QUESTION = "question"
    CHALLENGE = "challenge"
    EVIDENCE_INJECTION = "evidence_injection"
    PAUSE_REQUEST = "pause_request"
    CLARIFICATION_REQUEST = "clarification_request"


class InterventionStatus(Enum):
    """Queue-layer status of an intervention."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TransitionKind(Enum):
    """Enumerated variants of state machine events."""

    PHASE_CHANGE = "phase_change"
    PAUSED = "paused"
    RESUMED = "resumed"
    COMPLETED = "completed"
    ERROR = "error"
    SPEAKER_CHANGE = "speaker_change"


class InterruptionOutcome(Enum):
    """Result of a single interruption evaluation."""

    ACCEPTED = "accepted"
    COOLDOWN = "cooldown"
    TOO_EARLY = "too_early"
    RATE_LIMITED = "rate_limited"
    BELOW_THRESHOLD = "below_threshold"


class InterruptSource(Enum):
    """Where an interruption candidate came from."""

    AUTO = "auto"
    INTERVENTION = "intervention"


class PacingMode(Enum):
    """How fast lively debates stream and evaluate."""

    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"
    FRANTIC = "frantic"


class SpeakerStatus(Enum):
    """Per-speaker scheduling state in lively mode."""

    READY = "ready"
    SPEAKING = "speaking"
    INTERRUPTED = "interrupted"
    COOLDOWN = "cooldown"


class DebateEventType(Enum):
    """Event names pushed to subscribed clients."""

    PHASE_START = "phase_start"
    PHASE_COMPLETE = "phase_complete"
    PHASE_TRANSITION = "phase_transition"
    TURN_STARTED = "turn_started"
    TURN_COMPLETED = "turn_completed"
    UTTERANCE = "utterance"
    UTTERANCE_REGENERATED = "utterance_regenerated"
    INTERVENTION_SUBMITTED = "intervention_submitted"
    INTERVENTION_RESPONSE = "intervention_response"
    DEBATE_PAUSED = "debate_paused"
    DEBATE_RESUMED = "debate_resumed"
    DEBATE_COMPLETE = "debate_complete"
    DEBATE_STOPPED = "debate_stopped"
    ERROR = "error"
    SPEAKER_STARTED = "speaker_started"
    SPEAKER_CUTOFF = "speaker_cutoff"
    TOKEN_CHUNK = "token_chunk"
    INTERRUPT_EVALUATED = "interrupt_evaluated"
    INTERRUPT_FIRED = "interrupt_fired"
    INTERJECTION = "interjection"
    SPEAKING_RESUMED = "speaking_resumed"
    SETTINGS_UPDATED = "settings_updated"


class PhaseTransitionEventData(TypedDict):
    """Payload of phase_transition broadcasts."""

    kind: str
    from_phase: str
    to_phase: str
    speaker: str
    timestamp: str
    phase_elapsed_ms: int
    total_elapsed_ms: int
    error: str | None


class UtteranceEventData(TypedDict):
    """Payload of utterance broadcasts."""

    id: int
    timestamp_ms: int
    phase: str
    speaker: str
    content: str
    metadata: dict[str, Any]


class InterventionResponseEventData(TypedDict):
    """Payload of intervention_response broadcasts."""

    intervention_id: int
    response: str
    response_timestamp_ms: int
    speaker: str


# Callback type aliases
type TimeSource = Callable[[], float]
type Sleeper = Callable[[float], Awaitable[None]]
