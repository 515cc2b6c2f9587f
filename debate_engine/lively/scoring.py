"""Relevance and contradiction scoring for interruption candidates."""

import json
import logging
import re
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from models.manager import ModelManager

logger = logging.getLogger(__name__)

STOPWORDS = frozenset(
    """a an and are as at be been but by can could did do does for from had has have he her his
    i if in into is it its just me more my no not of on or our she so than that the their them
    then there these they this those to too us was we were what when which who will with would
    you your""".split()
)

NEGATION_CUES = frozenset(
    """not no never nothing nobody none neither nor cannot can't won't isn't aren't doesn't
    don't didn't wasn't weren't false wrong untrue incorrect myth""".split()
)

CONTRAST_CUES = frozenset(
    """but however actually yet although though instead contrary ignores ignore misleading
    nonsense overlooks fails exaggerates""".split()
)

_WORD = re.compile(r"[a-z][a-z']+")


def tokenize(text: str) -> list[str]:
    return _WORD.findall(text.lower())


def content_words(text: str) -> set[str]:
    return {word for word in tokenize(text) if word not in STOPWORDS and len(word) > 2}


class RelevanceScorer(Protocol):
    async def score(self, text_a: str, text_b: str) -> float: ...


class ContradictionDetector(Protocol):
    async def detect(self, candidate: str, active: str) -> float: ...


class LexicalRelevanceScorer:
    """Word-overlap relevance between a candidate and the active utterance.

    Plain Jaccard punishes a short candidate for the length of the utterance it
    answers, so the score is the larger of Jaccard and containment (the share
    of the candidate's content words that appear in the other text).
    """

    async def score(self, text_a: str, text_b: str) -> float:
        words_a = content_words(text_a)
        words_b = content_words(text_b)
        if not words_a or not words_b:
            return 0.0
        intersection = len(words_a & words_b)
        jaccard = intersection / max(len(words_a | words_b), 1)
        containment = intersection / len(words_a)
        return round(min(1.0, max(jaccard, containment)), 4)


class HeuristicContradictionDetector:
    """Soft contradiction signal from negation/contrast cues on a shared topic."""

    def __init__(self, relevance: LexicalRelevanceScorer | None = None):
        self._relevance = relevance or LexicalRelevanceScorer()

    async def detect(self, candidate: str, active: str) -> float:
        tokens = set(tokenize(candidate))
        cues = len(tokens & NEGATION_CUES) + len(tokens & CONTRAST_CUES)
        if cues == 0:
            return 0.0
        cue_strength = min(1.0, cues / 2)
        overlap = await self._relevance.score(candidate, active)
        # Disagreeing about something else entirely is weak evidence
        topical = 0.5 + 0.5 * min(1.0, overlap * 2)
        return round(cue_strength * topical, 4)


SCORING_PROMPT = """Rate how an interruption relates to what a debater is saying.

Debater is saying:
{active}

Interruption:
{candidate}

Reply with JSON only: {{"relevance": <0-1>, "contradiction": <0-1>}}"""


class ModelRelevanceScorer:
    """Asks a registered model for relevance and contradiction scores.

    Falls back to the lexical heuristics when the model fails or answers with
    something that is not the expected JSON.
    """

    def __init__(self, model_manager: "ModelManager", model_id: str):
        self.model_manager = model_manager
        self.model_id = model_id
        self._lexical = LexicalRelevanceScorer()
        self._heuristic = HeuristicContradictionDetector(self._lexical)
        self._cache: dict[tuple[str, str], dict[str, float]] = {}

    async def _scores(self, candidate: str, active: str) -> dict[str, float] | None:
        key = (candidate, active)
        if key in self._cache:
            return self._cache[key]
        messages = [
            {"role": "system", "content": "You are a precise debate analyst. Answer with JSON only."},
            {"role": "user", "content": SCORING_PROMPT.format(active=active, candidate=candidate)},
        ]
        try:
            raw = await self.model_manager.generate_response(
                self.model_id, messages, max_tokens=60, temperature=0.0
            )
            match = re.search(r"\{.*\}", raw, re.DOTALL)
            if not match:
                raise ValueError(f"no JSON object in {raw!r}")
            data = json.loads(match.group())
            scores = {
                name: max(0.0, min(1.0, float(data[name])))
                for name in ("relevance", "contradiction")
            }
        except Exception as e:
            logger.warning(f"Model scoring via {self.model_id} failed, using lexical scores: {e}")
            return None
        self._cache[key] = scores
        return scores

    async def score(self, text_a: str, text_b: str) -> float:
        scores = await self._scores(text_a, text_b)
        if scores is None:
            return await self._lexical.score(text_a, text_b)
        return scores["relevance"]

    async def detect(self, candidate: str, active: str) -> float:
        scores = await self._scores(candidate, active)
        if scores is None:
            return await self._heuristic.detect(candidate, active)
        return scores["contradiction"]
