"""Tests for turn sequencing and the standard format's turn table."""

import pytest

from debate_engine.errors import OutOfTurnsError
from debate_engine.turn_manager import TurnManager
from debate_engine.types import SPEAKING_PHASES, DebatePhase, PromptType, Speaker
from formats import StandardFormat, format_registry


@pytest.mark.parametrize("phase", SPEAKING_PHASES)
def test_advance_runs_out_after_expected_turns(phase: DebatePhase) -> None:
    """advance() succeeds turns_per_speaker * len(speakers) times, then raises."""
    debate_format = StandardFormat()
    manager = TurnManager(debate_format)
    turns = manager.set_phase(phase)
    expected = debate_format.get_phase_metadata(phase).expected_turn_count

    assert len(turns) == expected
    for _ in range(expected):
        manager.advance()

    assert manager.current_turn() is None
    assert manager.is_phase_complete()
    with pytest.raises(OutOfTurnsError):
        manager.advance()


def test_advance_without_phase_raises() -> None:
    with pytest.raises(OutOfTurnsError):
        TurnManager().advance()


def test_standard_format_has_twenty_turns() -> None:
    assert StandardFormat().total_turn_count() == 20


def test_opening_order() -> None:
    turns = StandardFormat().build_turns(DebatePhase.PHASE_1_OPENING)

    assert [(t.speaker, t.prompt_type) for t in turns] == [
        (Speaker.MODERATOR, PromptType.INTRODUCTION),
        (Speaker.PRO, PromptType.OPENING_STATEMENT),
        (Speaker.CON, PromptType.OPENING_STATEMENT),
    ]


def test_constructive_rounds_alternate_with_categories() -> None:
    turns = StandardFormat().build_turns(DebatePhase.PHASE_2_CONSTRUCTIVE)

    assert [t.speaker for t in turns] == [Speaker.PRO, Speaker.CON] * 3
    assert [t.metadata["round"] for t in turns] == [1, 1, 2, 2, 3, 3]
    assert turns[0].metadata["category"] == "economic_technical"
    assert turns[-1].metadata["category"] == "practical"


def test_cross_exam_pairs_questions_with_responses() -> None:
    turns = StandardFormat().build_turns(DebatePhase.PHASE_3_CROSSEXAM)

    assert [(t.turn_number, t.speaker, t.prompt_type, t.responds_to) for t in turns] == [
        (1, Speaker.PRO, PromptType.CROSS_EXAM_QUESTION, None),
        (2, Speaker.CON, PromptType.CROSS_EXAM_RESPONSE, 1),
        (3, Speaker.MODERATOR, PromptType.MODERATOR_CHECKPOINT, None),
        (4, Speaker.CON, PromptType.CROSS_EXAM_QUESTION, None),
        (5, Speaker.PRO, PromptType.CROSS_EXAM_RESPONSE, 4),
        (6, Speaker.MODERATOR, PromptType.MODERATOR_CHECKPOINT, None),
    ]


def test_rebuttal_and_closing_give_pro_the_last_word() -> None:
    debate_format = StandardFormat()

    for phase in (DebatePhase.PHASE_4_REBUTTAL, DebatePhase.PHASE_5_CLOSING):
        assert [t.speaker for t in debate_format.build_turns(phase)] == [Speaker.CON, Speaker.PRO]


def test_turn_ids_are_unique_across_the_debate() -> None:
    plan = TurnManager().get_execution_plan()
    turn_ids = [turn.turn_id for turns in plan.values() for turn in turns]

    assert len(turn_ids) == len(set(turn_ids)) == 20


def test_resume_at_positions_on_turn() -> None:
    manager = TurnManager()
    manager.set_phase(DebatePhase.PHASE_3_CROSSEXAM)

    turn = manager.resume_at(4)

    assert turn is not None
    assert turn.speaker is Speaker.CON
    assert turn.prompt_type is PromptType.CROSS_EXAM_QUESTION
    assert manager.progress().completed == 3


def test_resume_past_last_turn_completes_phase() -> None:
    manager = TurnManager()
    manager.set_phase(DebatePhase.PHASE_6_SYNTHESIS)

    assert manager.resume_at(2) is None
    assert manager.is_phase_complete()


@pytest.mark.parametrize("turn_number", [0, 5])
def test_resume_at_out_of_range(turn_number: int) -> None:
    manager = TurnManager()
    manager.set_phase(DebatePhase.PHASE_1_OPENING)

    with pytest.raises(ValueError):
        manager.resume_at(turn_number)


def test_progress_percentage() -> None:
    manager = TurnManager()
    manager.set_phase(DebatePhase.PHASE_2_CONSTRUCTIVE)
    manager.advance()
    manager.advance()

    progress = manager.progress()

    assert (progress.completed, progress.total, progress.remaining) == (2, 6, 4)
    assert progress.percentage == 33


def test_format_registry_lookup() -> None:
    assert format_registry.list_formats() == ["standard"]
    assert isinstance(format_registry.get_format("standard"), StandardFormat)
    with pytest.raises(ValueError):
        format_registry.get_format("oxford")


def test_next_phase_after_synthesis_is_completed() -> None:
    debate_format = StandardFormat()

    assert debate_format.next_phase(DebatePhase.INITIALIZING) is DebatePhase.PHASE_1_OPENING
    assert debate_format.next_phase(DebatePhase.PHASE_6_SYNTHESIS) is DebatePhase.COMPLETED
    with pytest.raises(ValueError):
        debate_format.next_phase(DebatePhase.PAUSED)
