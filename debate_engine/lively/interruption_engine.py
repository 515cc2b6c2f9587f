"""Decides whether a candidate interruption may cut off the active speaker."""

import asyncio
import logging
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from config.settings import LivelySettings
from ..models import InterruptionRecord
from ..types import DebatePhase, InterruptionOutcome, InterruptSource, Speaker
from .scoring import (
    ContradictionDetector,
    HeuristicContradictionDetector,
    LexicalRelevanceScorer,
    RelevanceScorer,
)

logger = logging.getLogger(__name__)

RATE_WINDOW_MS = 60_000


@dataclass
class EvaluationContext:
    """Everything one evaluation depends on, including the time it happens at."""

    debate_id: str
    phase: DebatePhase
    active_speaker: Speaker
    interrupter: Speaker
    elapsed_speaking_ms: int
    active_content: str
    candidate_content: str
    source: InterruptSource
    now_ms: float
    settings: LivelySettings


class InterruptionEngine:
    """Gates and scores interruption candidates for one debate.

    Gates run in a fixed order: cooldown since the last accepted interruption,
    minimum speaking time, then the rolling one-minute rate limit. Candidates
    that pass are scored as

        relevance * (1 - relevance_weight) + contradiction_boost * contradiction

    and accepted when the score reaches relevance_threshold. Every evaluation
    produces an InterruptionRecord, accepted or not.
    """

    def __init__(
        self,
        relevance_scorer: RelevanceScorer | None = None,
        contradiction_detector: ContradictionDetector | None = None,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        lexical = LexicalRelevanceScorer()
        self.relevance_scorer = relevance_scorer or lexical
        self.contradiction_detector = contradiction_detector or HeuristicContradictionDetector(lexical)
        self._id_factory = id_factory
        self._lock = asyncio.Lock()
        self._last_accepted_at: float | None = None
        self._accepted_times: deque[float] = deque()
        self.records: list[InterruptionRecord] = []

    @property
    def last_accepted_at(self) -> float | None:
        return self._last_accepted_at

    def accepted_in_window(self, now_ms: float) -> int:
        return sum(1 for t in self._accepted_times if now_ms - t < RATE_WINDOW_MS)

    def precheck(
        self, now_ms: float, elapsed_speaking_ms: int, settings: LivelySettings
    ) -> tuple[InterruptionOutcome, str] | None:
        """Apply the cheap gates. Returns the rejection, or None if scoring would run."""
        if (
            self._last_accepted_at is not None
            and now_ms - self._last_accepted_at < settings.interrupt_cooldown_ms
        ):
            remaining = settings.interrupt_cooldown_ms - (now_ms - self._last_accepted_at)
            return InterruptionOutcome.COOLDOWN, f"cooldown active for another {int(remaining)}ms"

        if elapsed_speaking_ms < settings.min_speaking_time_ms:
            return (
                InterruptionOutcome.TOO_EARLY,
                f"speaker has held the floor {elapsed_speaking_ms}ms of the "
                f"required {settings.min_speaking_time_ms}ms",
            )

        accepted = self.accepted_in_window(now_ms)
        if accepted >= settings.max_interrupts_per_minute:
            return (
                InterruptionOutcome.RATE_LIMITED,
                f"{accepted} interruption(s) in the last minute "
                f"(limit {settings.max_interrupts_per_minute})",
            )
        return None

    async def evaluate(self, ctx: EvaluationContext) -> InterruptionRecord:
        async with self._lock:
            settings = ctx.settings
            self._prune(ctx.now_ms)

            rejection = self.precheck(ctx.now_ms, ctx.elapsed_speaking_ms, settings)
            if rejection is not None:
                outcome, reason = rejection
                return self._record(ctx, outcome, reason)

            relevance = await self.relevance_scorer.score(ctx.candidate_content, ctx.active_content)
            contradiction = await self.contradiction_detector.detect(
                ctx.candidate_content, ctx.active_content
            )
            score = (
                relevance * (1 - settings.relevance_weight)
                + settings.contradiction_boost * contradiction
            )
            score = round(max(0.0, min(1.0, score)), 4)

            if score < settings.relevance_threshold:
                return self._record(
                    ctx,
                    InterruptionOutcome.BELOW_THRESHOLD,
                    f"score {score:.2f} below threshold {settings.relevance_threshold:.2f}",
                    score,
                    relevance,
                    contradiction,
                )

            self._last_accepted_at = ctx.now_ms
            self._accepted_times.append(ctx.now_ms)
            return self._record(
                ctx,
                InterruptionOutcome.ACCEPTED,
                f"score {score:.2f} meets threshold {settings.relevance_threshold:.2f}",
                score,
                relevance,
                contradiction,
            )

    def _prune(self, now_ms: float) -> None:
        while self._accepted_times and now_ms - self._accepted_times[0] >= RATE_WINDOW_MS:
            self._accepted_times.popleft()

    def _record(
        self,
        ctx: EvaluationContext,
        outcome: InterruptionOutcome,
        reason: str,
        score: float | None = None,
        relevance: float | None = None,
        contradiction: float | None = None,
    ) -> InterruptionRecord:
        record = InterruptionRecord(
            id=self._id_factory(),
            debate_id=ctx.debate_id,
            requested_at_ms=int(ctx.now_ms),
            phase=ctx.phase,
            interrupter=ctx.interrupter,
            interrupted_speaker=ctx.active_speaker,
            source=ctx.source,
            content=ctx.candidate_content,
            outcome=outcome,
            score=score,
            relevance=relevance,
            contradiction=contradiction,
            reason=reason,
        )
        self.records.append(record)
        logger.debug(
            "Interruption by %s of %s: %s (%s)",
            ctx.interrupter.value, ctx.active_speaker.value, outcome.value, reason,
        )
        return record

    def reset(self) -> None:
        self._last_accepted_at = None
        self._accepted_times.clear()
        self.records.clear()
