"""Tests for the lively scheduler's floor control and safe cut-off points."""

import pytest

from config.settings import LivelySettings
from conftest import FakeClock
from debate_engine.errors import AlreadySpeakingError
from debate_engine.lively import LivelyScheduler
from debate_engine.types import PacingMode, Speaker, SpeakerStatus


def make_scheduler(pacing_mode: PacingMode = PacingMode.MEDIUM) -> tuple[LivelyScheduler, FakeClock]:
    clock = FakeClock()
    settings = LivelySettings.from_preset("balanced", pacing_mode=pacing_mode)
    return LivelyScheduler(settings, clock), clock


def test_only_one_speaker_holds_the_floor() -> None:
    scheduler, _ = make_scheduler()
    scheduler.start_turn(Speaker.PRO)

    with pytest.raises(AlreadySpeakingError):
        scheduler.start_turn(Speaker.CON)

    assert scheduler.active_speaker is Speaker.PRO
    assert scheduler.speaker_status(Speaker.PRO) is SpeakerStatus.SPEAKING


def test_first_sentence_boundary_is_always_recorded() -> None:
    scheduler, _ = make_scheduler()
    scheduler.start_turn(Speaker.PRO)

    assert scheduler.append_content("Fares pay for buses") is None
    assert not scheduler.can_interrupt()

    boundary = scheduler.append_content(". They also pay")

    assert boundary == 20
    assert scheduler.content[:boundary] == "Fares pay for buses."
    assert scheduler.can_interrupt()


def test_boundaries_closer_than_the_gap_are_merged() -> None:
    """A second boundary inside min_boundary_gap_ms keeps the earlier cut-off."""
    scheduler, clock = make_scheduler()
    scheduler.start_turn(Speaker.PRO)
    scheduler.append_content("Fares pay for buses. They also pay")

    assert scheduler.append_content(" for roads. And") is None
    assert scheduler.last_safe_boundary == 20

    clock.advance(2500)
    boundary = scheduler.append_content(" more. ")

    assert boundary == scheduler.last_safe_boundary
    assert scheduler.content[:boundary].endswith("And more.")


def test_clause_boundaries_only_in_fast_pacing() -> None:
    medium, _ = make_scheduler(PacingMode.MEDIUM)
    fast, _ = make_scheduler(PacingMode.FAST)
    for scheduler in (medium, fast):
        scheduler.start_turn(Speaker.CON)

    assert medium.append_content("Free fares help, ") is None
    assert fast.append_content("Free fares help, ") == 16


def test_paragraph_break_is_a_boundary() -> None:
    scheduler, _ = make_scheduler()
    scheduler.start_turn(Speaker.CON)

    boundary = scheduler.append_content("First paragraph\n\nSecond")

    assert boundary == len("First paragraph")


def test_preempt_cuts_at_last_safe_boundary() -> None:
    scheduler, clock = make_scheduler()
    scheduler.start_turn(Speaker.PRO)
    scheduler.append_content("Fares pay for buses. They also pay for")
    clock.advance(4000)

    result = scheduler.force_preempt(Speaker.CON)

    assert result.speaker is Speaker.PRO
    assert result.interrupter is Speaker.CON
    assert result.spoken == "Fares pay for buses."
    assert result.discarded == "They also pay for"
    assert result.elapsed_ms == 4000
    assert scheduler.active_speaker is None
    assert scheduler.speaker_status(Speaker.PRO) is SpeakerStatus.INTERRUPTED
    assert scheduler.speaker_status(Speaker.CON) is SpeakerStatus.COOLDOWN


def test_preempt_without_boundary_keeps_whole_words() -> None:
    scheduler, _ = make_scheduler()
    scheduler.start_turn(Speaker.PRO)
    scheduler.append_content("Fares pay for bus")

    result = scheduler.force_preempt(Speaker.MODERATOR)

    assert result.spoken == "Fares pay for"
    assert result.discarded == "bus"


def test_end_turn_releases_the_floor() -> None:
    scheduler, clock = make_scheduler()
    scheduler.start_turn(Speaker.MODERATOR)
    clock.advance(3000)

    assert scheduler.end_turn() == 3000
    assert scheduler.active_speaker is None
    assert scheduler.speaker_status(Speaker.MODERATOR) is SpeakerStatus.READY
    assert scheduler.end_turn() == 0

    scheduler.start_turn(Speaker.PRO)
    assert scheduler.content == ""


def test_append_needs_an_active_speaker() -> None:
    scheduler, _ = make_scheduler()

    with pytest.raises(RuntimeError):
        scheduler.append_content("Nobody is speaking.")
    with pytest.raises(RuntimeError):
        scheduler.force_preempt(Speaker.PRO)
