"""Lively mode: streamed turns that can be cut off by accepted interruptions."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from config.settings import LivelySettings
from ..clock import monotonic_ms
from ..errors import AgentFailureError
from ..models import DebateState, Intervention, InterruptionRecord, Turn, Utterance
from ..orchestrator import DebateOrchestrator
from ..prompt_builder import SPEAKER_LABELS
from ..types import (
    DebateEventType,
    InterruptionOutcome,
    InterruptSource,
    InterventionType,
    Sleeper,
    Speaker,
    TimeSource,
)
from .interruption_engine import EvaluationContext, InterruptionEngine
from .scheduler import LivelyScheduler

logger = logging.getLogger(__name__)

ADVOCATES = (Speaker.PRO, Speaker.CON)


@dataclass
class Candidate:
    """A possible interruption before it is evaluated."""

    interrupter: Speaker
    content: str
    source: InterruptSource
    intervention: Intervention | None = None

    @property
    def key(self) -> str:
        if self.intervention is not None:
            return f"intervention:{self.intervention.id}"
        return f"auto:{self.interrupter.value}"


class LivelyDebateOrchestrator:
    """Wraps a DebateOrchestrator and takes over how each turn is delivered.

    Each response is streamed in pacing-sized chunks. Between chunks the
    pending candidates (challenge interventions, voiced by the moderator, and
    auto interjections from the opposing advocate) are evaluated. When one is
    accepted the speaker is cut off at the last safe boundary and the
    interjection is recorded as its own utterance.
    """

    def __init__(
        self,
        orchestrator: DebateOrchestrator,
        settings: LivelySettings | None = None,
        engine: InterruptionEngine | None = None,
        time_source: TimeSource = monotonic_ms,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.orchestrator = orchestrator
        self.settings = settings or LivelySettings()
        self.engine = engine or InterruptionEngine()
        self.scheduler = LivelyScheduler(self.settings, time_source)
        self._now = time_source
        self._sleep = sleep
        self._voiced_interventions: set[int] = set()
        orchestrator.delivery = self.deliver_turn

    @property
    def debate_id(self) -> str:
        return self.orchestrator.debate_id

    async def run(self) -> DebateState:
        return await self.orchestrator.run()

    def update_settings(self, **changes: Any) -> LivelySettings:
        """Apply new settings; takes effect from the next streamed chunk."""
        merged = self.settings.model_dump()
        merged.update(changes)
        self.settings = LivelySettings.model_validate(merged)
        self.scheduler.update_settings(self.settings)
        self.orchestrator.broadcast(
            DebateEventType.SETTINGS_UPDATED, self.settings.model_dump(mode="json")
        )
        logger.info("Lively settings updated for debate %s: %s", self.debate_id, sorted(changes))
        return self.settings

    async def list_interruptions(
        self, outcome: InterruptionOutcome | None = None
    ) -> list[InterruptionRecord]:
        return await self.orchestrator.stores.interruptions.list_by_debate(self.debate_id, outcome)

    # -- delivery ----------------------------------------------------------

    async def deliver_turn(self, turn: Turn, content: str, metadata: dict[str, Any]) -> Utterance:
        core = self.orchestrator
        self.scheduler.start_turn(turn.speaker)
        core.broadcast(
            DebateEventType.SPEAKER_STARTED,
            {"speaker": turn.speaker.value, "turn_id": turn.turn_id, "phase": turn.phase.value},
        )

        seen: set[tuple[str, InterruptionOutcome]] = set()
        last_evaluation = self._now()
        position = 0
        try:
            while position < len(content):
                pacing = self.settings.pacing
                chunk = content[position:position + pacing.chunk_size]
                position += len(chunk)
                await self._sleep(len(chunk) / self.settings.speech_rate_cps)
                core.ensure_running()

                self.scheduler.append_content(chunk)
                core.broadcast(
                    DebateEventType.TOKEN_CHUNK,
                    {"speaker": turn.speaker.value, "chunk": chunk, "position": position},
                )

                if position >= len(content) or turn.speaker not in ADVOCATES:
                    continue
                if self._now() - last_evaluation < pacing.evaluation_interval_ms:
                    continue
                last_evaluation = self._now()

                accepted = await self._evaluate_candidates(turn, seen)
                if accepted is not None:
                    record, candidate = accepted
                    return await self._interrupt(turn, metadata, record, candidate)
        except BaseException:
            self.scheduler.end_turn()
            raise

        self.scheduler.end_turn()
        return await core.record_utterance(turn.phase, turn.speaker, content, metadata)

    async def _evaluate_candidates(
        self, turn: Turn, seen: set[tuple[str, InterruptionOutcome]]
    ) -> tuple[InterruptionRecord, Candidate] | None:
        if not self.scheduler.can_interrupt():
            return None

        for candidate in await self._gather_candidates(turn):
            record = await self.engine.evaluate(
                EvaluationContext(
                    debate_id=self.debate_id,
                    phase=turn.phase,
                    active_speaker=turn.speaker,
                    interrupter=candidate.interrupter,
                    elapsed_speaking_ms=self.scheduler.elapsed_speaking_ms(),
                    active_content=self.scheduler.content,
                    candidate_content=candidate.content,
                    source=candidate.source,
                    now_ms=self.orchestrator.timestamp_ms(),
                    settings=self.settings,
                )
            )
            # Repeated identical rejections within one turn are only stored once
            if record.accepted or (candidate.key, record.outcome) not in seen:
                seen.add((candidate.key, record.outcome))
                await self._store_record(record)
            if record.accepted:
                return record, candidate
        return None

    async def _gather_candidates(self, turn: Turn) -> list[Candidate]:
        core = self.orchestrator
        candidates = [
            Candidate(
                interrupter=Speaker.MODERATOR,
                content=f"Let me stop you there. A challenge from the audience: {challenge.content}",
                source=InterruptSource.INTERVENTION,
                intervention=challenge,
            )
            for challenge in await core.queue.pending_for(
                self.debate_id, turn.speaker, types={InterventionType.CHALLENGE}
            )
            if challenge.id not in self._voiced_interventions
        ]

        if self.settings.auto_interjections:
            rejection = self.engine.precheck(
                core.timestamp_ms(), self.scheduler.elapsed_speaking_ms(), self.settings
            )
            if rejection is None:
                interjection = await self._generate_interjection(turn)
                if interjection:
                    candidates.append(
                        Candidate(
                            interrupter=turn.speaker.opponent,
                            content=interjection,
                            source=InterruptSource.AUTO,
                        )
                    )
        return candidates

    async def _generate_interjection(self, turn: Turn) -> str | None:
        core = self.orchestrator
        context = core.prompt_builder.build_interjection_context(
            self.debate_id,
            core.proposition,
            turn.phase,
            turn.speaker.opponent,
            self.scheduler.content,
            core.history,
            self.settings.interjection_max_tokens,
        )
        try:
            raw = await core.invoke_with_retry(turn.speaker.opponent, context)
        except AgentFailureError as e:
            logger.warning(f"No interjection from {turn.speaker.opponent.value}: {e}")
            return None
        content = core.validator.clean(raw)
        return content or None

    async def _store_record(self, record: InterruptionRecord) -> None:
        core = self.orchestrator
        await core.persist(
            f"interruption record {record.id}",
            lambda: core.stores.interruptions.append(record),
        )
        core.broadcast(DebateEventType.INTERRUPT_EVALUATED, record.to_dict())

    async def _interrupt(
        self,
        turn: Turn,
        metadata: dict[str, Any],
        record: InterruptionRecord,
        candidate: Candidate,
    ) -> Utterance:
        core = self.orchestrator
        preempt = self.scheduler.force_preempt(candidate.interrupter)
        core.broadcast(
            DebateEventType.SPEAKER_CUTOFF,
            {
                "speaker": turn.speaker.value,
                "interrupter": candidate.interrupter.value,
                "spoken_chars": len(preempt.spoken),
                "discarded_chars": len(preempt.discarded),
                "elapsed_ms": preempt.elapsed_ms,
            },
        )

        cut_metadata = dict(metadata)
        cut_metadata.update(
            {
                "interrupted": True,
                "interrupted_by": candidate.interrupter.value,
                "interruption_id": record.id,
                "discarded_chars": len(preempt.discarded),
            }
        )
        utterance = await core.record_utterance(turn.phase, turn.speaker, preempt.spoken, cut_metadata)
        core.broadcast(DebateEventType.INTERRUPT_FIRED, record.to_dict())

        interjection_metadata: dict[str, Any] = {
            "interjection": True,
            "interruption_id": record.id,
            "source": candidate.source.value,
            "interrupted_speaker": turn.speaker.value,
        }
        if candidate.source is InterruptSource.AUTO:
            interjection_metadata.update(core.take_generation_details(candidate.interrupter))
        if candidate.intervention is not None:
            self._voiced_interventions.add(candidate.intervention.id)
            interjection_metadata["intervention_id"] = candidate.intervention.id
        interjection = await core.record_utterance(
            turn.phase, candidate.interrupter, candidate.content, interjection_metadata
        )
        core.broadcast(DebateEventType.INTERJECTION, interjection.to_dict())

        core.resumption_notes[(turn.phase, turn.speaker)] = (
            f"You were interrupted by {SPEAKER_LABELS[candidate.interrupter]}, who said: "
            f'"{candidate.content}". Respond to that briefly, then continue your argument.'
        )
        return utterance
