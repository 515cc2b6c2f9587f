"""Tests for relevance and contradiction scoring."""

import asyncio

import pytest

from debate_engine.lively import (
    HeuristicContradictionDetector,
    LexicalRelevanceScorer,
    ModelRelevanceScorer,
)


class FakeModelManager:
    def __init__(self, reply: str = "", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[str] = []

    async def generate_response(self, model_id: str, messages, **overrides) -> str:
        self.calls.append(model_id)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.mark.parametrize(
    ("text_a", "text_b", "expected"),
    [
        ("Fares fund buses", "Fares fund buses", 1.0),
        ("Fares fund buses", "Weather seems pleasant today", 0.0),
        ("", "Fares fund buses", 0.0),
        ("the and of", "Fares fund buses", 0.0),
        ("fares fund maintenance", "Fares fund buses", 0.6667),
    ],
)
def test_lexical_relevance(text_a: str, text_b: str, expected: float) -> None:
    score = asyncio.run(LexicalRelevanceScorer().score(text_a, text_b))

    assert score == pytest.approx(expected, abs=1e-4)


def test_short_candidate_is_not_punished_for_long_target() -> None:
    long_target = (
        "Fares fund maintenance, drivers, depots, new routes, cleaning, security "
        "and the pensions of retired transit workers across the region."
    )

    score = asyncio.run(LexicalRelevanceScorer().score("fares fund maintenance", long_target))

    assert score == pytest.approx(1.0)


def test_contradiction_needs_cues() -> None:
    detector = HeuristicContradictionDetector()

    score = asyncio.run(detector.detect("Fares fund maintenance", "Fares fund maintenance budgets"))

    assert score == 0.0


def test_on_topic_contradiction_scores_higher_than_off_topic() -> None:
    detector = HeuristicContradictionDetector()
    candidate = "That is not true, fares fund maintenance"

    on_topic = asyncio.run(detector.detect(candidate, "Fares fund maintenance budgets"))
    off_topic = asyncio.run(detector.detect(candidate, "Weather seems pleasant today"))

    assert on_topic == pytest.approx(0.5)
    assert off_topic == pytest.approx(0.25)


def test_model_scorer_parses_and_caches() -> None:
    manager = FakeModelManager('Sure: {"relevance": 0.7, "contradiction": 1.4}')
    scorer = ModelRelevanceScorer(manager, "scorer-model")

    async def scenario() -> tuple[float, float]:
        relevance = await scorer.score("Fares fund buses", "Fares fund maintenance")
        contradiction = await scorer.detect("Fares fund buses", "Fares fund maintenance")
        return relevance, contradiction

    relevance, contradiction = asyncio.run(scenario())

    assert relevance == pytest.approx(0.7)
    assert contradiction == 1.0
    assert manager.calls == ["scorer-model"]


@pytest.mark.parametrize(
    "manager",
    [
        FakeModelManager(error=RuntimeError("model unavailable")),
        FakeModelManager("I would say it is fairly relevant."),
        FakeModelManager('{"relevance": "high"}'),
    ],
)
def test_model_scorer_falls_back_to_lexical(manager: FakeModelManager) -> None:
    scorer = ModelRelevanceScorer(manager, "scorer-model")

    score = asyncio.run(scorer.score("fares fund maintenance", "Fares fund buses"))

    assert score == pytest.approx(0.6667, abs=1e-4)
