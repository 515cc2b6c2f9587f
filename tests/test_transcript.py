"""Tests for transcript assembly and rendering."""

import asyncio

from conftest import ARGUMENTS, INTERJECTION_TEXT, MODERATOR_TEXT, PROPOSITION
from debate_engine.models import DebateState, Intervention, Utterance
from debate_engine.transcript import TranscriptManager, build_transcript, format_transcript_text
from debate_engine.types import DebatePhase, InterventionStatus, InterventionType, Speaker
from formats.standard import StandardFormat


def sample_utterances() -> list[Utterance]:
    opening = DebatePhase.PHASE_1_OPENING
    return [
        Utterance("debate-1", 0, opening, Speaker.MODERATOR, MODERATOR_TEXT, {"turn_id": "a"}),
        Utterance(
            "debate-1", 65_000, opening, Speaker.PRO, "Free fares raise ridership.",
            {"turn_id": "b", "interrupted": True, "interrupted_by": "con"},
        ),
        Utterance("debate-1", 66_000, opening, Speaker.CON, INTERJECTION_TEXT, {"interjection": True}),
        Utterance(
            "debate-1", 125_000, DebatePhase.PHASE_2_CONSTRUCTIVE, Speaker.CON,
            ARGUMENTS[Speaker.CON], {"turn_id": "c"},
        ),
    ]


def sample_interventions() -> list[Intervention]:
    return [
        Intervention(
            id=1, debate_id="debate-1", timestamp_ms=30_000,
            intervention_type=InterventionType.EVIDENCE_INJECTION,
            content="A 2023 audit found fares cover 20% of operating costs.",
            response="The audit supports my point.", response_timestamp_ms=65_000,
            status=InterventionStatus.COMPLETED,
        ),
        Intervention(
            id=2, debate_id="debate-1", timestamp_ms=40_000,
            intervention_type=InterventionType.QUESTION, content="Who pays instead?",
        ),
    ]


def completed_state() -> DebateState:
    return DebateState(
        debate_id="debate-1",
        current_phase=DebatePhase.COMPLETED,
        total_elapsed_ms=130_000,
    )


def test_transcript_summarises_phases() -> None:
    document = build_transcript(
        PROPOSITION, StandardFormat(), completed_state(), sample_utterances(), sample_interventions()
    )

    metadata = document["metadata"]
    assert metadata["debate_id"] == "debate-1"
    assert metadata["format"] == "standard"
    assert metadata["utterance_count"] == 4
    assert metadata["interruption_count"] == 1
    assert metadata["total_elapsed_ms"] == 130_000

    opening, constructive = document["phases"]
    assert opening["name"] == "Opening Statements"
    assert opening["utterance_count"] == 3
    assert opening["speakers"] == ["moderator", "pro", "con"]
    assert opening["duration_ms"] == 66_000
    assert constructive["phase"] == "phase_2_constructive"
    assert constructive["duration_ms"] == 0

    assert len(document["interventions"]) == 2
    assert document["final_state"]["current_phase"] == "completed"


def test_text_rendering() -> None:
    document = build_transcript(
        PROPOSITION, StandardFormat(), completed_state(), sample_utterances(), sample_interventions()
    )

    text = format_transcript_text(document)

    assert text.startswith(f"DEBATE: {PROPOSITION}")
    assert "=== Opening Statements ===" in text
    assert "=== Constructive Arguments ===" in text
    assert "[01:05] PRO [interrupted]: Free fares raise ridership." in text
    assert f"[00:00] Moderator: {MODERATOR_TEXT}" in text
    assert "- evidence_injection: A 2023 audit found fares cover 20% of operating costs." in text
    assert "Who pays instead?" not in text
    assert text.endswith("Final phase: completed")


def test_failed_debate_shows_error() -> None:
    state = DebateState(debate_id="debate-1", current_phase=DebatePhase.ERROR, error="Debate stopped: user")

    text = format_transcript_text(build_transcript(PROPOSITION, StandardFormat(), state, [], []))

    assert "Final phase: error" in text
    assert text.endswith("Error: Debate stopped: user")


def test_manager_reads_from_stores(stores) -> None:
    async def scenario() -> None:
        for utterance in sample_utterances():
            await stores.utterances.append(utterance)

        document = await TranscriptManager(stores, StandardFormat()).build(PROPOSITION, completed_state())

        assert [u["speaker"] for u in document["utterances"]] == ["moderator", "pro", "con", "con"]
        assert document["utterances"][1]["metadata"]["interrupted"] is True
        assert document["interventions"] == []

    asyncio.run(scenario())
