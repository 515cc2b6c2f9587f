"""Turn sequencing within a phase."""

import logging
from dataclasses import dataclass

from formats.base import DebateFormat
from formats.standard import StandardFormat
from .errors import OutOfTurnsError
from .models import Turn
from .types import DebatePhase

logger = logging.getLogger(__name__)


@dataclass
class TurnProgress:
    """How far the current phase has progressed."""

    phase: DebatePhase
    completed: int
    total: int

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 100
        return round(self.completed / self.total * 100)


class TurnManager:
    """Tracks the position inside the ordered turn list of the current phase."""

    def __init__(self, debate_format: DebateFormat | None = None):
        self._format = debate_format or StandardFormat()
        self._phase: DebatePhase | None = None
        self._turns: list[Turn] = []
        self._index = 0

    @property
    def phase(self) -> DebatePhase | None:
        return self._phase

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    def set_phase(self, phase: DebatePhase) -> list[Turn]:
        """Load the turn sequence for `phase` and rewind to its first turn."""
        self._phase = phase
        self._turns = self._format.build_turns(phase)
        self._index = 0
        logger.debug("Loaded %s turns for %s", len(self._turns), phase.value)
        return self.turns

    def current_turn(self) -> Turn | None:
        """Turn that should run next, or None once the phase is exhausted."""
        if self._index < len(self._turns):
            return self._turns[self._index]
        return None

    def advance(self) -> Turn | None:
        """Mark the current turn done and return the next one (None at the end)."""
        if self._phase is None:
            raise OutOfTurnsError("No phase loaded")
        if self._index >= len(self._turns):
            raise OutOfTurnsError(f"All {len(self._turns)} turns of {self._phase.value} are done")
        self._index += 1
        return self.current_turn()

    def resume_at(self, turn_number: int) -> Turn | None:
        """Position on `turn_number` (1-based), e.g. persisted utterance count + 1."""
        if self._phase is None:
            raise OutOfTurnsError("No phase loaded")
        if not 1 <= turn_number <= len(self._turns) + 1:
            raise ValueError(
                f"Turn {turn_number} is outside 1..{len(self._turns) + 1} for {self._phase.value}"
            )
        self._index = turn_number - 1
        logger.info("Resuming %s at turn %s", self._phase.value, turn_number)
        return self.current_turn()

    def is_phase_complete(self) -> bool:
        return self._index >= len(self._turns)

    def get_turn(self, turn_number: int) -> Turn | None:
        for turn in self._turns:
            if turn.turn_number == turn_number:
                return turn
        return None

    def progress(self) -> TurnProgress:
        if self._phase is None:
            raise OutOfTurnsError("No phase loaded")
        return TurnProgress(phase=self._phase, completed=self._index, total=len(self._turns))

    def get_execution_plan(self) -> dict[DebatePhase, list[Turn]]:
        """All turns of every phase, in order."""
        return {phase: self._format.build_turns(phase) for phase in self._format.get_phases()}
