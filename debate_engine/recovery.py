"""Rebuild a debate's in-memory state from its persisted logs after a restart."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from formats.base import DebateFormat
from formats.standard import StandardFormat
from .clock import monotonic_ms
from .models import Utterance
from .state_machine import DebateStateMachine
from .stores import DebateStores
from .turn_manager import TurnManager
from .types import TimeSource

logger = logging.getLogger(__name__)


@dataclass
class RecoveredDebate:
    state_machine: DebateStateMachine
    turn_manager: TurnManager
    utterances: list[Utterance] = field(default_factory=list)
    completed_turns: int = 0


def completed_turn_count(utterances: list[Utterance], phase) -> int:
    """Scheduled turns already finished in `phase`; interjections do not count."""
    turn_ids = {
        u.metadata["turn_id"]
        for u in utterances
        if u.phase is phase and u.metadata.get("turn_id")
    }
    return len(turn_ids)


async def recover_debate(
    debate_id: str,
    stores: DebateStores,
    debate_format: DebateFormat | None = None,
    time_source: TimeSource = monotonic_ms,
    wall_clock: Callable[[], datetime] = datetime.now,
) -> RecoveredDebate | None:
    """Replay the transition log and position the turn manager.

    Returns None when the debate never left INITIALIZING.
    """
    debate_format = debate_format or StandardFormat()
    events = await stores.transitions.list_by_debate(debate_id)
    if not events:
        logger.info("No transitions stored for debate %s", debate_id)
        return None

    machine = DebateStateMachine.from_history(
        debate_id, events, debate_format, time_source=time_source, wall_clock=wall_clock
    )
    utterances = await stores.utterances.list_by_session(debate_id)
    turn_manager = TurnManager(debate_format)

    phase = machine.previous_phase if machine.is_paused else machine.current_phase
    completed = 0
    if phase is not None and phase.is_speaking_phase:
        turns = turn_manager.set_phase(phase)
        completed = min(completed_turn_count(utterances, phase), len(turns))
        turn_manager.resume_at(completed + 1)

    logger.info(
        "Recovered debate %s in %s with %s utterance(s), %s turn(s) done in the current phase",
        debate_id, machine.current_phase.value, len(utterances), completed,
    )
    return RecoveredDebate(
        state_machine=machine,
        turn_manager=turn_manager,
        utterances=utterances,
        completed_turns=completed,
    )
