"""Tests for prompt contexts and rendered chat messages."""

from conftest import ARGUMENTS, PROPOSITION, QUESTIONS
from debate_engine.models import Intervention, Utterance
from debate_engine.prompt_builder import INTERJECTION_WORD_LIMIT, PromptBuilder
from debate_engine.types import DebatePhase, InterventionType, PromptType, Speaker
from formats import StandardFormat


def utterance(speaker: Speaker, content: str, phase=DebatePhase.PHASE_2_CONSTRUCTIVE, **metadata) -> Utterance:
    return Utterance(
        debate_id="debate-1",
        timestamp_ms=0,
        phase=phase,
        speaker=speaker,
        content=content,
        metadata=metadata,
    )


def turn_of(phase: DebatePhase, number: int):
    return next(t for t in StandardFormat().build_turns(phase) if t.turn_number == number)


def test_word_limits_scale_by_prompt_type() -> None:
    builder = PromptBuilder(word_limit=250)

    assert builder.word_limit_for(PromptType.OPENING_STATEMENT) == 250
    assert builder.word_limit_for(PromptType.INTRODUCTION) == 150
    assert builder.word_limit_for(PromptType.SYNTHESIS) == 375
    assert PromptBuilder(word_limit=20).word_limit_for(PromptType.CROSS_EXAM_QUESTION) == 20


def test_response_turn_sees_the_question() -> None:
    """A cross-examination response is linked to the question it answers."""
    builder = PromptBuilder()
    asked = utterance(Speaker.PRO, QUESTIONS[Speaker.PRO], DebatePhase.PHASE_3_CROSSEXAM, turn_number=1)

    context = builder.build_context(
        "debate-1", PROPOSITION, turn_of(DebatePhase.PHASE_3_CROSSEXAM, 2), [asked]
    )
    messages = builder.build_messages(context)

    assert context.responding_to is asked
    assert f'PRO asked you: "{QUESTIONS[Speaker.PRO]}"' in messages[-1]["content"]


def test_older_history_is_summarised() -> None:
    builder = PromptBuilder(history_window=2)
    history = [
        utterance(Speaker.PRO, "First point. More detail follows here."),
        utterance(Speaker.CON, "Second point. Also with detail."),
        utterance(Speaker.PRO, ARGUMENTS[Speaker.PRO]),
        utterance(Speaker.CON, ARGUMENTS[Speaker.CON]),
    ]

    context = builder.build_context(
        "debate-1", PROPOSITION, turn_of(DebatePhase.PHASE_2_CONSTRUCTIVE, 3), history
    )

    assert context.recent_utterances == history[2:]
    assert context.prior_summary == "- PRO: First point.\n- CON: Second point."


def test_messages_use_roles_from_the_speaker_point_of_view() -> None:
    builder = PromptBuilder()
    history = [utterance(Speaker.PRO, ARGUMENTS[Speaker.PRO]), utterance(Speaker.CON, ARGUMENTS[Speaker.CON])]

    context = builder.build_context(
        "debate-1", PROPOSITION, turn_of(DebatePhase.PHASE_2_CONSTRUCTIVE, 3), history
    )
    messages = builder.build_messages(context)

    assert messages[0]["role"] == "system"
    assert "You ARE the PRO advocate" in messages[0]["content"]
    assert PROPOSITION in messages[0]["content"]
    assert messages[1] == {"role": "assistant", "content": ARGUMENTS[Speaker.PRO]}
    assert messages[2] == {"role": "user", "content": f"CON: {ARGUMENTS[Speaker.CON]}"}
    assert "ethical and social considerations" in messages[-1]["content"]


def test_interventions_are_listed_in_the_turn_prompt() -> None:
    builder = PromptBuilder()
    intervention = Intervention(
        id=7,
        debate_id="debate-1",
        timestamp_ms=0,
        intervention_type=InterventionType.EVIDENCE_INJECTION,
        content="Tallinn ridership rose 14 percent after fares were removed.",
        directed_to=Speaker.PRO,
    )

    context = builder.build_context(
        "debate-1",
        PROPOSITION,
        turn_of(DebatePhase.PHASE_1_OPENING, 2),
        [],
        interventions=[intervention],
        resumption_note="You were interrupted earlier.",
    )
    prompt = builder.build_messages(context)[-1]["content"]

    assert "Address each briefly" in prompt
    assert "- New evidence: Tallinn ridership rose 14 percent" in prompt
    assert "You were interrupted earlier." in prompt


def test_moderator_prompt_forbids_picking_a_winner() -> None:
    builder = PromptBuilder()
    context = builder.build_context(
        "debate-1", PROPOSITION, turn_of(DebatePhase.PHASE_6_SYNTHESIS, 1), []
    )
    messages = builder.build_messages(context)

    assert "never take a side" in messages[0]["content"]
    assert "Do not declare a winner" in messages[-1]["content"]


def test_interjection_context() -> None:
    builder = PromptBuilder()

    context = builder.build_interjection_context(
        "debate-1",
        PROPOSITION,
        DebatePhase.PHASE_2_CONSTRUCTIVE,
        Speaker.CON,
        "Free fares always pay for themselves.",
        [],
        max_tokens=60,
    )
    prompt = builder.build_messages(context)[-1]["content"]

    assert context.prompt_type is PromptType.INTERJECTION
    assert context.word_limit == INTERJECTION_WORD_LIMIT
    assert context.max_tokens == 60
    assert "PRO is speaking right now" in prompt
    assert "Free fares always pay for themselves." in prompt
