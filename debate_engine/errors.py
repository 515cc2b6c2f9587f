"""Exception hierarchy for the debate engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import DebatePhase, Speaker


class DebateEngineError(Exception):
    """Base class for all debate engine errors."""


class InvalidTransitionError(DebateEngineError):
    """Raised when a phase transition is not allowed from the current phase."""

    def __init__(self, from_phase: DebatePhase, to_phase: DebatePhase, detail: str = ""):
        self.from_phase = from_phase
        self.to_phase = to_phase
        message = f"Invalid transition: {from_phase.value} -> {to_phase.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class SpeakerNotAllowedError(DebateEngineError):
    """Raised when a speaker is set outside the allowed speakers of a phase."""

    def __init__(self, speaker: Speaker, phase: DebatePhase):
        self.speaker = speaker
        self.phase = phase
        super().__init__(f"Speaker {speaker.value} is not allowed in {phase.value}")


class OutOfTurnsError(DebateEngineError):
    """Raised by TurnManager.advance() once the phase's turns are exhausted."""


class AgentError(DebateEngineError):
    """Raised by an agent invoker when a single generation attempt fails."""


class AgentFailureError(DebateEngineError):
    """Raised when an agent keeps failing after every retry."""

    def __init__(self, speaker: Speaker, attempts: int, last_error: BaseException | None):
        self.speaker = speaker
        self.attempts = attempts
        self.last_error = last_error
        reason = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(
            f"Agent {speaker.value} failed after {attempts} attempt(s): {reason}"
        )


class ValidationError(DebateEngineError):
    """Raised when generated content fails quality checks."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class PersistenceError(DebateEngineError):
    """Raised when a store write keeps failing after bounded retries."""


class DebateBusyError(DebateEngineError):
    """Raised when a control call arrives while another one is in progress."""

    def __init__(self, debate_id: str):
        self.debate_id = debate_id
        super().__init__(f"Debate {debate_id} is busy, retry shortly")


class DebateNotFoundError(DebateEngineError):
    """Raised when no debate with the given id is known."""

    def __init__(self, debate_id: str):
        self.debate_id = debate_id
        super().__init__(f"Debate not found: {debate_id}")


class DebateStoppedError(DebateEngineError):
    """Raised inside the turn loop when the debate was stopped."""


class AlreadySpeakingError(DebateEngineError):
    """Raised when a lively turn starts while another speaker holds the floor."""

    def __init__(self, active: Speaker, requested: Speaker):
        self.active = active
        self.requested = requested
        super().__init__(
            f"Cannot start turn for {requested.value}: {active.value} is already speaking"
        )
