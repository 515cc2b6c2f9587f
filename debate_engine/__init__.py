"""Debate orchestration core: phases, turns, interventions and lively interruptions."""

from .types import DebatePhase, Speaker, PromptType, InterventionType, TransitionKind
from .models import DebateState, Turn, Utterance, Intervention, PhaseTransitionEvent
from .errors import (
    DebateEngineError,
    InvalidTransitionError,
    OutOfTurnsError,
    AgentFailureError,
    ValidationError,
    DebateBusyError,
)

__all__ = [
    "DebatePhase",
    "Speaker",
    "PromptType",
    "InterventionType",
    "TransitionKind",
    "DebateState",
    "Turn",
    "Utterance",
    "Intervention",
    "PhaseTransitionEvent",
    "DebateEngineError",
    "InvalidTransitionError",
    "OutOfTurnsError",
    "AgentFailureError",
    "ValidationError",
    "DebateBusyError",
]
