"""Base classes and interfaces for debate formats."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from debate_engine.models import Turn
from debate_engine.types import SPEAKING_PHASES, DebatePhase, Speaker


@dataclass(frozen=True)
class PhaseMetadata:
    """Static description of one phase within a format."""

    phase: DebatePhase
    name: str
    duration_minutes: int
    allowed_speakers: tuple[Speaker, ...]
    turns_per_speaker: int
    description: str = ""

    @property
    def expected_turn_count(self) -> int:
        return self.turns_per_speaker * len(self.allowed_speakers)


class DebateFormat(ABC):
    """Abstract base class for debate formats.

    A format is a policy table: which phases run, who may speak in each, and the
    ordered turns every phase produces. The state machine and orchestrator stay
    the same across formats.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Format name."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable format name for display in UI."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Format description."""
        pass

    @abstractmethod
    def get_phase_metadata(self, phase: DebatePhase) -> PhaseMetadata:
        """Return metadata for a speaking phase."""
        pass

    @abstractmethod
    def build_turns(self, phase: DebatePhase) -> list[Turn]:
        """Return the ordered turns for a speaking phase."""
        pass

    @abstractmethod
    def get_format_instructions(self) -> str:
        """Get format-specific instructions for system prompts."""
        pass

    def get_phases(self) -> list[DebatePhase]:
        """Speaking phases in execution order."""
        return list(SPEAKING_PHASES)

    def next_phase(self, phase: DebatePhase) -> DebatePhase:
        """Phase that follows `phase`, or COMPLETED after the last one."""
        phases = self.get_phases()
        if phase is DebatePhase.INITIALIZING:
            return phases[0]
        if phase not in phases:
            raise ValueError(f"{phase.value} is not a speaking phase of {self.name}")
        index = phases.index(phase)
        if index + 1 < len(phases):
            return phases[index + 1]
        return DebatePhase.COMPLETED

    def allowed_speakers(self, phase: DebatePhase) -> tuple[Speaker, ...]:
        if not phase.is_speaking_phase:
            return (Speaker.SYSTEM,)
        return self.get_phase_metadata(phase).allowed_speakers

    def is_speaker_allowed(self, phase: DebatePhase, speaker: Speaker) -> bool:
        return speaker in self.allowed_speakers(phase)

    def default_speaker(self, phase: DebatePhase) -> Speaker:
        """Speaker that holds the floor when a phase is entered."""
        if not phase.is_speaking_phase:
            return Speaker.SYSTEM
        turns = self.build_turns(phase)
        if turns:
            return turns[0].speaker
        allowed = self.allowed_speakers(phase)
        return allowed[0] if allowed else Speaker.SYSTEM

    def total_turn_count(self) -> int:
        return sum(len(self.build_turns(phase)) for phase in self.get_phases())
