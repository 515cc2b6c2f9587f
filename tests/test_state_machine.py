"""Tests for the debate phase state machine."""

from datetime import datetime

import pytest

from conftest import FakeClock
from debate_engine.errors import InvalidTransitionError, SpeakerNotAllowedError
from debate_engine.models import PhaseTransitionEvent
from debate_engine.state_machine import DebateStateMachine
from debate_engine.types import SPEAKING_PHASES, DebatePhase, Speaker, TransitionKind

FIXED_NOW = datetime(2025, 3, 14, 12, 0, 0)


def make_machine(clock: FakeClock | None = None) -> tuple[DebateStateMachine, list[PhaseTransitionEvent]]:
    machine = DebateStateMachine(
        "debate-1", time_source=clock or FakeClock(), wall_clock=lambda: FIXED_NOW
    )
    events: list[PhaseTransitionEvent] = []
    machine.add_listener(events.append)
    return machine, events


def test_initialize_enters_opening_with_moderator() -> None:
    machine, events = make_machine()

    machine.initialize()

    assert machine.current_phase is DebatePhase.PHASE_1_OPENING
    assert machine.current_speaker is Speaker.MODERATOR
    assert events[0].kind is TransitionKind.PHASE_CHANGE
    assert events[0].from_phase is DebatePhase.INITIALIZING


def test_phases_run_in_order_then_complete() -> None:
    """advance_phase() walks every speaking phase and ends in COMPLETED."""
    machine, events = make_machine()

    machine.initialize()
    visited = [machine.current_phase]
    while not machine.is_finished:
        machine.advance_phase()
        visited.append(machine.current_phase)

    assert visited == [*SPEAKING_PHASES, DebatePhase.COMPLETED]
    assert events[-1].kind is TransitionKind.COMPLETED
    assert machine.current_speaker is Speaker.SYSTEM


def test_skipping_a_phase_is_rejected() -> None:
    machine, events = make_machine()
    machine.initialize()

    with pytest.raises(InvalidTransitionError):
        machine.transition(DebatePhase.PHASE_3_CROSSEXAM)

    assert machine.current_phase is DebatePhase.PHASE_1_OPENING
    assert len(events) == 1


def test_pause_only_from_speaking_phases() -> None:
    machine, _ = make_machine()

    with pytest.raises(InvalidTransitionError):
        machine.pause()

    machine.initialize()
    machine.pause()
    with pytest.raises(InvalidTransitionError):
        machine.pause()


def test_resume_requires_paused_debate() -> None:
    machine, _ = make_machine()
    machine.initialize()

    with pytest.raises(InvalidTransitionError):
        machine.resume()


def test_paused_debate_only_returns_to_previous_phase() -> None:
    machine, _ = make_machine()
    machine.initialize()
    machine.pause()

    assert machine.allowed_transitions() == {DebatePhase.PHASE_1_OPENING, DebatePhase.ERROR}
    with pytest.raises(InvalidTransitionError):
        machine.transition(DebatePhase.PHASE_2_CONSTRUCTIVE)


def test_pause_resume_restores_speaker_and_excludes_paused_time() -> None:
    """Paused wall time does not count towards the phase."""
    clock = FakeClock()
    machine, events = make_machine(clock)
    machine.initialize()
    machine.set_speaker(Speaker.PRO)

    clock.advance(1000)
    machine.pause()
    assert machine.is_paused
    assert machine.previous_phase is DebatePhase.PHASE_1_OPENING
    assert machine.current_speaker is Speaker.SYSTEM

    clock.advance(10_000)
    machine.resume()
    clock.advance(500)

    assert machine.current_phase is DebatePhase.PHASE_1_OPENING
    assert machine.current_speaker is Speaker.PRO
    assert machine.previous_phase is None
    assert not machine.is_paused
    assert machine.phase_elapsed_ms() == 1500
    assert [e.kind for e in events][-2:] == [TransitionKind.PAUSED, TransitionKind.RESUMED]


def test_error_is_terminal() -> None:
    machine, _ = make_machine()
    machine.initialize()

    machine.fail("model unavailable")

    assert machine.current_phase is DebatePhase.ERROR
    assert machine.state.error == "model unavailable"
    assert machine.allowed_transitions() == set()
    with pytest.raises(InvalidTransitionError):
        machine.advance_phase()


def test_speaker_must_be_allowed_in_phase() -> None:
    machine, _ = make_machine()
    machine.initialize()
    machine.advance_phase()

    with pytest.raises(SpeakerNotAllowedError):
        machine.set_speaker(Speaker.MODERATOR)


def test_setting_same_speaker_emits_nothing() -> None:
    machine, events = make_machine()
    machine.initialize()

    assert machine.set_speaker(Speaker.MODERATOR) is None
    change = machine.set_speaker(Speaker.PRO)

    assert change is not None
    assert change.kind is TransitionKind.SPEAKER_CHANGE
    assert len(events) == 2


def test_failing_listener_does_not_block_transition() -> None:
    machine, _ = make_machine()

    def broken(event: PhaseTransitionEvent) -> None:
        raise RuntimeError("listener exploded")

    machine.add_listener(broken)
    machine.initialize()

    assert machine.current_phase is DebatePhase.PHASE_1_OPENING


def test_from_history_rebuilds_paused_state() -> None:
    """Replaying the event log restores phase, pause and accumulated time."""
    clock = FakeClock()
    machine, events = make_machine(clock)
    machine.initialize()
    clock.advance(3000)
    machine.advance_phase()
    clock.advance(2000)
    machine.pause()

    restored = DebateStateMachine.from_history(
        "debate-1", events, time_source=clock, wall_clock=lambda: FIXED_NOW
    )

    assert restored.current_phase is DebatePhase.PAUSED
    assert restored.previous_phase is DebatePhase.PHASE_2_CONSTRUCTIVE
    assert restored.is_paused
    assert restored.total_elapsed_ms() == 5000

    restored.resume()
    assert restored.current_phase is DebatePhase.PHASE_2_CONSTRUCTIVE
    assert restored.current_speaker is Speaker.PRO


def test_from_history_keeps_error_message() -> None:
    machine, events = make_machine()
    machine.initialize()
    machine.fail("Debate stopped: test")

    restored = DebateStateMachine.from_history("debate-1", events)

    assert restored.is_finished
    assert restored.state.error == "Debate stopped: test"


def test_resume_without_a_previous_phase_is_rejected() -> None:
    machine, _ = make_machine()
    machine.initialize()
    machine.pause()
    machine._state.previous_phase = None

    with pytest.raises(InvalidTransitionError):
        machine._leave_pause()


def test_state_snapshot_is_a_copy() -> None:
    machine, _ = make_machine()
    machine.initialize()

    snapshot = machine.state
    snapshot.current_phase = DebatePhase.COMPLETED

    assert machine.current_phase is DebatePhase.PHASE_1_OPENING
    assert snapshot.to_dict()["debate_id"] == "debate-1"
