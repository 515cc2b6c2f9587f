"""Debate phase state machine."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime

from formats.base import DebateFormat
from formats.standard import StandardFormat
from .clock import PhaseClock, monotonic_ms
from .errors import InvalidTransitionError, SpeakerNotAllowedError
from .models import DebateState, PhaseTransitionEvent
from .types import DebatePhase, Speaker, TimeSource, TransitionKind

logger = logging.getLogger(__name__)

type StateListener = Callable[[PhaseTransitionEvent], None]


class DebateStateMachine:
    """Owns phase and speaker state for one debate and validates every change.

    The machine performs no I/O. Each successful change is delivered to the
    registered listeners as a PhaseTransitionEvent.
    """

    def __init__(
        self,
        debate_id: str,
        debate_format: DebateFormat | None = None,
        time_source: TimeSource = monotonic_ms,
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        self._format = debate_format or StandardFormat()
        self._clock = PhaseClock(time_source)
        self._wall_clock = wall_clock
        self._state = DebateState(debate_id=debate_id, phase_start_time=wall_clock())
        self._speaker_before_pause: Speaker | None = None
        self._listeners: list[StateListener] = []

    @property
    def debate_id(self) -> str:
        return self._state.debate_id

    @property
    def debate_format(self) -> DebateFormat:
        return self._format

    @property
    def current_phase(self) -> DebatePhase:
        return self._state.current_phase

    @property
    def current_speaker(self) -> Speaker:
        return self._state.current_speaker

    @property
    def previous_phase(self) -> DebatePhase | None:
        return self._state.previous_phase

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def is_finished(self) -> bool:
        return self._state.current_phase.is_terminal

    @property
    def state(self) -> DebateState:
        """Copy of the current state with live elapsed time."""
        return replace(self._state, total_elapsed_ms=self._clock.total_elapsed_ms())

    def phase_elapsed_ms(self) -> int:
        return self._clock.phase_elapsed_ms()

    def total_elapsed_ms(self) -> int:
        return self._clock.total_elapsed_ms()

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def allowed_transitions(self, phase: DebatePhase | None = None) -> set[DebatePhase]:
        """Phases reachable from `phase` (defaults to the current phase)."""
        phase = phase or self._state.current_phase
        if phase.is_terminal:
            return set()
        if phase is DebatePhase.PAUSED:
            targets = {DebatePhase.ERROR}
            if self._state.previous_phase is not None:
                targets.add(self._state.previous_phase)
            return targets

        targets = {DebatePhase.ERROR, self._format.next_phase(phase)}
        if phase.is_speaking_phase:
            targets.add(DebatePhase.PAUSED)
        return targets

    def transition(
        self,
        to_phase: DebatePhase,
        speaker: Speaker | None = None,
        error: str | None = None,
    ) -> PhaseTransitionEvent:
        """Move to `to_phase`, raising InvalidTransitionError if it is unreachable."""
        current = self._state.current_phase
        if to_phase not in self.allowed_transitions(current):
            raise InvalidTransitionError(current, to_phase, self._rejection_detail(current, to_phase))

        if to_phase is DebatePhase.ERROR:
            return self._enter_error(error or "Unknown error")
        if to_phase is DebatePhase.PAUSED:
            return self._enter_pause()
        if current is DebatePhase.PAUSED:
            return self._leave_pause()
        if to_phase is DebatePhase.COMPLETED:
            return self._enter_completed()
        return self._enter_phase(to_phase, speaker)

    def initialize(self) -> PhaseTransitionEvent:
        """Leave INITIALIZING for the first speaking phase."""
        return self.transition(self._format.next_phase(DebatePhase.INITIALIZING))

    def advance_phase(self) -> PhaseTransitionEvent:
        """Transition to whatever follows the current phase in the format."""
        return self.transition(self._format.next_phase(self._state.current_phase))

    def pause(self) -> PhaseTransitionEvent:
        return self.transition(DebatePhase.PAUSED)

    def resume(self) -> PhaseTransitionEvent:
        current = self._state.current_phase
        if current is not DebatePhase.PAUSED or self._state.previous_phase is None:
            raise InvalidTransitionError(current, current, "debate is not paused")
        return self.transition(self._state.previous_phase)

    def fail(self, message: str) -> PhaseTransitionEvent:
        return self.transition(DebatePhase.ERROR, error=message)

    def complete(self) -> PhaseTransitionEvent:
        return self.transition(DebatePhase.COMPLETED)

    def set_speaker(self, speaker: Speaker) -> PhaseTransitionEvent | None:
        """Hand the floor to `speaker`; returns None if nothing changed."""
        phase = self._state.current_phase
        if not self._format.is_speaker_allowed(phase, speaker):
            raise SpeakerNotAllowedError(speaker, phase)
        if speaker is self._state.current_speaker:
            return None
        self._state.current_speaker = speaker
        return self._emit(TransitionKind.SPEAKER_CHANGE, phase, phase)

    def _rejection_detail(self, current: DebatePhase, to_phase: DebatePhase) -> str:
        if current.is_terminal:
            return "debate already finished"
        if current is DebatePhase.PAUSED and to_phase is DebatePhase.PAUSED:
            return "debate is already paused"
        if current is DebatePhase.PAUSED and self._state.previous_phase is not None:
            return f"can only resume to {self._state.previous_phase.value}"
        if to_phase is DebatePhase.PAUSED:
            return f"{current.value} cannot be paused"
        return "not in transition table"

    def _enter_phase(self, to_phase: DebatePhase, speaker: Speaker | None) -> PhaseTransitionEvent:
        speaker = speaker or self._format.default_speaker(to_phase)
        if not self._format.is_speaker_allowed(to_phase, speaker):
            raise SpeakerNotAllowedError(speaker, to_phase)

        from_phase = self._state.current_phase
        phase_elapsed = self._clock.start_phase()
        self._state.current_phase = to_phase
        self._state.previous_phase = None
        self._state.current_speaker = speaker
        self._state.phase_start_time = self._wall_clock()

        logger.info(
            "Debate %s: %s -> %s (speaker %s)",
            self.debate_id, from_phase.value, to_phase.value, speaker.value,
        )
        return self._emit(TransitionKind.PHASE_CHANGE, from_phase, to_phase, phase_elapsed)

    def _enter_pause(self) -> PhaseTransitionEvent:
        from_phase = self._state.current_phase
        self._clock.pause()
        now = self._wall_clock()
        self._speaker_before_pause = self._state.current_speaker
        self._state.previous_phase = from_phase
        self._state.current_phase = DebatePhase.PAUSED
        self._state.current_speaker = Speaker.SYSTEM
        self._state.is_paused = True
        self._state.paused_at = now

        logger.info("Debate %s paused during %s", self.debate_id, from_phase.value)
        return self._emit(TransitionKind.PAUSED, from_phase, DebatePhase.PAUSED)

    def _leave_pause(self) -> PhaseTransitionEvent:
        resumed_phase = self._state.previous_phase
        if resumed_phase is None:
            raise InvalidTransitionError(DebatePhase.PAUSED, DebatePhase.PAUSED, "no phase to resume to")
        self._clock.resume()
        speaker = self._speaker_before_pause or self._format.default_speaker(resumed_phase)
        self._state.current_phase = resumed_phase
        self._state.previous_phase = None
        self._state.current_speaker = speaker
        self._state.is_paused = False
        self._state.paused_at = None
        self._state.phase_start_time = self._wall_clock()
        self._speaker_before_pause = None

        logger.info("Debate %s resumed in %s", self.debate_id, resumed_phase.value)
        return self._emit(TransitionKind.RESUMED, DebatePhase.PAUSED, resumed_phase)

    def _enter_completed(self) -> PhaseTransitionEvent:
        from_phase = self._state.current_phase
        phase_elapsed = self._clock.stop()
        self._state.current_phase = DebatePhase.COMPLETED
        self._state.current_speaker = Speaker.SYSTEM

        logger.info("Debate %s completed", self.debate_id)
        return self._emit(TransitionKind.COMPLETED, from_phase, DebatePhase.COMPLETED, phase_elapsed)

    def _enter_error(self, message: str) -> PhaseTransitionEvent:
        from_phase = self._state.current_phase
        phase_elapsed = self._clock.stop()
        self._state.current_phase = DebatePhase.ERROR
        self._state.current_speaker = Speaker.SYSTEM
        self._state.is_paused = False
        self._state.paused_at = None
        self._state.error = message

        logger.error("Debate %s entered ERROR from %s: %s", self.debate_id, from_phase.value, message)
        return self._emit(
            TransitionKind.ERROR, from_phase, DebatePhase.ERROR, phase_elapsed, error=message
        )

    def _emit(
        self,
        kind: TransitionKind,
        from_phase: DebatePhase,
        to_phase: DebatePhase,
        phase_elapsed_ms: int | None = None,
        error: str | None = None,
    ) -> PhaseTransitionEvent:
        event = PhaseTransitionEvent(
            debate_id=self.debate_id,
            kind=kind,
            from_phase=from_phase,
            to_phase=to_phase,
            speaker=self._state.current_speaker,
            timestamp=self._wall_clock(),
            phase_elapsed_ms=(
                phase_elapsed_ms if phase_elapsed_ms is not None else self._clock.phase_elapsed_ms()
            ),
            total_elapsed_ms=self._clock.total_elapsed_ms(),
            error=error,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("State listener failed for %s event", kind.value)
        return event

    @classmethod
    def from_history(
        cls,
        debate_id: str,
        events: Iterable[PhaseTransitionEvent],
        debate_format: DebateFormat | None = None,
        time_source: TimeSource = monotonic_ms,
        wall_clock: Callable[[], datetime] = datetime.now,
    ) -> "DebateStateMachine":
        """Rebuild a machine from its persisted transition log."""
        machine = cls(debate_id, debate_format, time_source, wall_clock)
        history = list(events)
        if not history:
            return machine

        last = history[-1]
        state = machine._state
        machine._clock.restore(last.total_elapsed_ms)
        state.current_phase = last.to_phase
        state.phase_start_time = last.timestamp

        if last.to_phase is DebatePhase.PAUSED:
            state.previous_phase = last.from_phase
            state.is_paused = True
            state.paused_at = last.timestamp
            state.current_speaker = Speaker.SYSTEM
            machine._speaker_before_pause = machine._format.default_speaker(last.from_phase)
        elif last.to_phase.is_terminal:
            state.current_speaker = Speaker.SYSTEM
            state.error = last.error
            machine._clock.stop()
        else:
            speaker = last.speaker
            if not machine._format.is_speaker_allowed(last.to_phase, speaker):
                speaker = machine._format.default_speaker(last.to_phase)
            state.current_speaker = speaker
            machine._clock.resume()

        logger.info(
            "Restored debate %s in %s from %s transition(s)",
            debate_id, state.current_phase.value, len(history),
        )
        return machine
