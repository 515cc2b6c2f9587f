"""Storage contracts used by the orchestrators, plus SQLite-backed adapters.

The orchestrators only depend on the Protocols. The SQLite adapters push the
blocking sqlite3 calls to a worker thread so a slow disk never stalls the loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from .database import DatabaseManager
from .models import Intervention, InterruptionRecord, PhaseTransitionEvent, Utterance
from .types import (
    DebatePhase,
    InterruptionOutcome,
    InterventionStatus,
    InterventionType,
    Speaker,
)


class UtteranceStore(Protocol):
    async def append(self, utterance: Utterance) -> int: ...

    async def list_by_session(self, debate_id: str) -> list[Utterance]: ...

    async def count(self, debate_id: str, phase: DebatePhase | None = None) -> int: ...

    async def get(self, utterance_id: int) -> Utterance | None: ...

    async def replace_content(
        self, utterance_id: int, content: str, metadata: dict[str, Any]
    ) -> bool: ...


class InterventionStore(Protocol):
    async def create(
        self,
        debate_id: str,
        timestamp_ms: int,
        intervention_type: InterventionType,
        content: str,
        directed_to: Speaker | None,
    ) -> int: ...

    async def find_by_id(self, intervention_id: int) -> Intervention | None: ...

    async def mark_answered(self, intervention_id: int, response: str, timestamp_ms: int) -> bool: ...

    async def update_status(self, intervention_id: int, status: InterventionStatus) -> bool: ...

    async def list_by_debate(
        self,
        debate_id: str,
        status: InterventionStatus | None = None,
        intervention_type: InterventionType | None = None,
        directed_to: Speaker | None = None,
    ) -> list[Intervention]: ...

    async def delete_by_debate(self, debate_id: str) -> int: ...


class PhaseTransitionStore(Protocol):
    async def append(self, event: PhaseTransitionEvent) -> None: ...

    async def list_by_debate(self, debate_id: str) -> list[PhaseTransitionEvent]: ...


class InterruptionStore(Protocol):
    async def append(self, record: InterruptionRecord) -> None: ...

    async def list_by_debate(
        self, debate_id: str, outcome: InterruptionOutcome | None = None
    ) -> list[InterruptionRecord]: ...


class SQLiteUtteranceStore:
    def __init__(self, db: DatabaseManager):
        self._db = db

    async def append(self, utterance: Utterance) -> int:
        return await asyncio.to_thread(self._db.insert_utterance, utterance)

    async def list_by_session(self, debate_id: str) -> list[Utterance]:
        return await asyncio.to_thread(self._db.list_utterances, debate_id)

    async def count(self, debate_id: str, phase: DebatePhase | None = None) -> int:
        return await asyncio.to_thread(self._db.count_utterances, debate_id, phase)

    async def get(self, utterance_id: int) -> Utterance | None:
        return await asyncio.to_thread(self._db.get_utterance, utterance_id)

    async def replace_content(
        self, utterance_id: int, content: str, metadata: dict[str, Any]
    ) -> bool:
        return await asyncio.to_thread(
            self._db.update_utterance_content, utterance_id, content, metadata
        )


class SQLiteInterventionStore:
    def __init__(self, db: DatabaseManager):
        self._db = db

    async def create(
        self,
        debate_id: str,
        timestamp_ms: int,
        intervention_type: InterventionType,
        content: str,
        directed_to: Speaker | None,
    ) -> int:
        return await asyncio.to_thread(
            self._db.insert_intervention, debate_id, timestamp_ms, intervention_type, content, directed_to
        )

    async def find_by_id(self, intervention_id: int) -> Intervention | None:
        return await asyncio.to_thread(self._db.get_intervention, intervention_id)

    async def mark_answered(self, intervention_id: int, response: str, timestamp_ms: int) -> bool:
        return await asyncio.to_thread(
            self._db.answer_intervention, intervention_id, response, timestamp_ms
        )

    async def update_status(self, intervention_id: int, status: InterventionStatus) -> bool:
        return await asyncio.to_thread(self._db.update_intervention_status, intervention_id, status)

    async def list_by_debate(
        self,
        debate_id: str,
        status: InterventionStatus | None = None,
        intervention_type: InterventionType | None = None,
        directed_to: Speaker | None = None,
    ) -> list[Intervention]:
        return await asyncio.to_thread(
            self._db.list_interventions, debate_id, status, intervention_type, directed_to
        )

    async def delete_by_debate(self, debate_id: str) -> int:
        return await asyncio.to_thread(self._db.delete_interventions, debate_id)


class SQLitePhaseTransitionStore:
    def __init__(self, db: DatabaseManager):
        self._db = db

    async def append(self, event: PhaseTransitionEvent) -> None:
        await asyncio.to_thread(self._db.insert_phase_transition, event)

    async def list_by_debate(self, debate_id: str) -> list[PhaseTransitionEvent]:
        return await asyncio.to_thread(self._db.list_phase_transitions, debate_id)


class SQLiteInterruptionStore:
    def __init__(self, db: DatabaseManager):
        self._db = db

    async def append(self, record: InterruptionRecord) -> None:
        await asyncio.to_thread(self._db.insert_interruption, record)

    async def list_by_debate(
        self, debate_id: str, outcome: InterruptionOutcome | None = None
    ) -> list[InterruptionRecord]:
        return await asyncio.to_thread(self._db.list_interruptions, debate_id, outcome)


class DebateStores:
    """The set of stores one debate needs."""

    def __init__(
        self,
        utterances: UtteranceStore,
        interventions: InterventionStore,
        transitions: PhaseTransitionStore,
        interruptions: InterruptionStore,
    ):
        self.utterances = utterances
        self.interventions = interventions
        self.transitions = transitions
        self.interruptions = interruptions

    @classmethod
    def sqlite(cls, db: DatabaseManager) -> DebateStores:
        return cls(
            utterances=SQLiteUtteranceStore(db),
            interventions=SQLiteInterventionStore(db),
            transitions=SQLitePhaseTransitionStore(db),
            interruptions=SQLiteInterruptionStore(db),
        )
