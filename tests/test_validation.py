"""Tests for response cleanup and validation."""

import pytest

from conftest import ARGUMENTS, MODERATOR_TEXT
from debate_engine.types import PromptType, Speaker
from debate_engine.validation import ResponseValidator


@pytest.mark.parametrize(
    "raw",
    [
        f"PRO: {ARGUMENTS[Speaker.PRO]}",
        f"**Pro Opening Statement**: {ARGUMENTS[Speaker.PRO]}",
        f"[PRO - opening]: {ARGUMENTS[Speaker.PRO]}",
        f"## {ARGUMENTS[Speaker.PRO]}",
    ],
)
def test_echoed_labels_and_markdown_are_stripped(raw: str) -> None:
    result = ResponseValidator().validate(raw, Speaker.PRO, PromptType.OPENING_STATEMENT)

    assert result.is_valid
    assert result.content == ARGUMENTS[Speaker.PRO]


def test_inline_emphasis_is_removed() -> None:
    cleaned = ResponseValidator().clean("Fares are **not** the main cost of *running* buses.")

    assert cleaned == "Fares are not the main cost of running buses."


def test_empty_response_is_invalid() -> None:
    result = ResponseValidator().validate("   ", Speaker.CON, PromptType.REBUTTAL)

    assert not result.is_valid
    assert result.errors == ["empty response"]


def test_too_short_response_is_invalid() -> None:
    result = ResponseValidator().validate("No.", Speaker.CON, PromptType.REBUTTAL)

    assert not result.is_valid


def test_cross_exam_question_needs_a_question_mark() -> None:
    validator = ResponseValidator()

    statement = validator.validate(
        "Tell the audience who pays for the buses.", Speaker.PRO, PromptType.CROSS_EXAM_QUESTION
    )
    asked = validator.validate(
        "Who pays for the buses once fares are gone?", Speaker.PRO, PromptType.CROSS_EXAM_QUESTION
    )

    assert statement.errors == ["cross-examination question contains no question"]
    assert asked.is_valid
    assert "short_response" not in asked.flags


def test_moderator_may_not_declare_a_winner() -> None:
    result = ResponseValidator().validate(
        "Both sides argued well, but the winner is clearly the PRO side.",
        Speaker.MODERATOR,
        PromptType.SYNTHESIS,
    )

    assert result.errors == ["moderator declared a winner"]


def test_neutral_moderator_text_passes() -> None:
    result = ResponseValidator().validate(MODERATOR_TEXT, Speaker.MODERATOR, PromptType.SYNTHESIS)

    assert result.is_valid


def test_flags_do_not_invalidate() -> None:
    validator = ResponseValidator(word_limit_tolerance=1.0)

    result = validator.validate(ARGUMENTS[Speaker.CON], Speaker.CON, PromptType.REBUTTAL, word_limit=10)

    assert result.is_valid
    assert "short_response" in result.flags
    assert "over_word_limit" in result.flags
