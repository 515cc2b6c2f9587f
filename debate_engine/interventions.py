"""Per-debate queue of user interventions awaiting a response."""

import asyncio
import logging

from .models import Intervention, InterventionInput
from .stores import InterventionStore
from .types import InterventionStatus, InterventionType, Speaker

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 2000


class InterventionQueue:
    """In-memory view of each debate's interventions, written through to a store.

    The HTTP layer produces and the orchestrator consumes, so every access to a
    debate's entries happens under that debate's lock.
    """

    def __init__(self, store: InterventionStore):
        self._store = store
        self._entries: dict[str, dict[int, Intervention]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, debate_id: str) -> asyncio.Lock:
        return self._locks.setdefault(debate_id, asyncio.Lock())

    @staticmethod
    def validate(data: InterventionInput) -> None:
        """Raise ValueError if the intervention cannot be accepted."""
        content = data.content.strip()
        if not content:
            raise ValueError("Intervention content cannot be empty")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValueError(f"Intervention content exceeds {MAX_CONTENT_LENGTH} characters")
        if data.directed_to is Speaker.SYSTEM:
            raise ValueError("Interventions cannot be directed to the system")

    async def add(self, debate_id: str, data: InterventionInput, timestamp_ms: int) -> Intervention:
        self.validate(data)
        content = data.content.strip()
        async with self._lock(debate_id):
            intervention_id = await self._store.create(
                debate_id, timestamp_ms, data.intervention_type, content, data.directed_to
            )
            intervention = Intervention(
                id=intervention_id,
                debate_id=debate_id,
                timestamp_ms=timestamp_ms,
                intervention_type=data.intervention_type,
                content=content,
                directed_to=data.directed_to,
            )
            self._entries.setdefault(debate_id, {})[intervention_id] = intervention

        logger.info(
            "Queued %s intervention %s for debate %s (directed to %s)",
            data.intervention_type.value,
            intervention_id,
            debate_id,
            data.directed_to.value if data.directed_to else "anyone",
        )
        return intervention

    async def get(self, debate_id: str, intervention_id: int) -> Intervention | None:
        async with self._lock(debate_id):
            entry = self._entries.get(debate_id, {}).get(intervention_id)
        if entry is not None:
            return entry
        return await self._store.find_by_id(intervention_id)

    def _pending(
        self,
        debate_id: str,
        speaker: Speaker,
        include_clarifications: bool,
        types: set[InterventionType] | None,
    ) -> list[Intervention]:
        pending = []
        for intervention in self._entries.get(debate_id, {}).values():
            if intervention.status is not InterventionStatus.QUEUED:
                continue
            if intervention.intervention_type is InterventionType.PAUSE_REQUEST:
                continue
            if types is not None and intervention.intervention_type not in types:
                continue
            if (
                intervention.intervention_type is InterventionType.CLARIFICATION_REQUEST
                and not include_clarifications
            ):
                continue
            if intervention.directed_to not in (None, speaker):
                continue
            pending.append(intervention)
        return pending

    async def pending_for(
        self,
        debate_id: str,
        speaker: Speaker,
        include_clarifications: bool = False,
        types: set[InterventionType] | None = None,
    ) -> list[Intervention]:
        """Queued interventions the speaker should answer, oldest first."""
        async with self._lock(debate_id):
            return self._pending(debate_id, speaker, include_clarifications, types)

    async def pending_pause_requests(self, debate_id: str) -> list[Intervention]:
        async with self._lock(debate_id):
            return [
                entry
                for entry in self._entries.get(debate_id, {}).values()
                if entry.intervention_type is InterventionType.PAUSE_REQUEST
                and entry.status is InterventionStatus.QUEUED
            ]

    async def claim_for_turn(
        self,
        debate_id: str,
        speaker: Speaker,
        include_clarifications: bool = False,
        types: set[InterventionType] | None = None,
    ) -> list[Intervention]:
        """Move queued interventions the speaker should answer to PROCESSING and return them."""
        async with self._lock(debate_id):
            claimed = self._pending(debate_id, speaker, include_clarifications, types)
            for intervention in claimed:
                await self._store.update_status(intervention.id, InterventionStatus.PROCESSING)
                intervention.status = InterventionStatus.PROCESSING
        return claimed

    async def mark_completed(
        self, debate_id: str, intervention_id: int, response: str, response_timestamp_ms: int
    ) -> Intervention | None:
        async with self._lock(debate_id):
            await self._store.mark_answered(intervention_id, response, response_timestamp_ms)
            entry = self._entries.get(debate_id, {}).get(intervention_id)
            if entry is not None:
                entry.response = response
                entry.response_timestamp_ms = response_timestamp_ms
                entry.status = InterventionStatus.COMPLETED
        logger.info("Intervention %s answered in debate %s", intervention_id, debate_id)
        return entry

    async def mark_failed(self, debate_id: str, intervention_id: int) -> None:
        await self._set_status(debate_id, intervention_id, InterventionStatus.FAILED)

    async def requeue(self, debate_id: str, intervention_id: int) -> None:
        await self._set_status(debate_id, intervention_id, InterventionStatus.QUEUED)

    async def _set_status(
        self, debate_id: str, intervention_id: int, status: InterventionStatus
    ) -> None:
        async with self._lock(debate_id):
            await self._store.update_status(intervention_id, status)
            entry = self._entries.get(debate_id, {}).get(intervention_id)
            if entry is not None:
                entry.status = status

    async def list_interventions(
        self,
        debate_id: str,
        status: InterventionStatus | None = None,
        intervention_type: InterventionType | None = None,
        directed_to: Speaker | None = None,
    ) -> list[Intervention]:
        async with self._lock(debate_id):
            loaded = debate_id in self._entries
            entries = list(self._entries.get(debate_id, {}).values())
        if not loaded:
            return await self._store.list_by_debate(debate_id, status, intervention_type, directed_to)
        return [
            entry
            for entry in entries
            if (status is None or entry.status is status)
            and (intervention_type is None or entry.intervention_type is intervention_type)
            and (directed_to is None or entry.directed_to is directed_to)
        ]

    async def unanswered_count(self, debate_id: str) -> int:
        entries = await self.list_interventions(debate_id)
        return sum(1 for entry in entries if not entry.is_answered)

    async def load_from_store(self, debate_id: str) -> int:
        """Rebuild the in-memory queue after a restart."""
        stored = await self._store.list_by_debate(debate_id)
        async with self._lock(debate_id):
            entries: dict[int, Intervention] = {}
            for intervention in stored:
                if intervention.response is not None:
                    intervention.status = InterventionStatus.COMPLETED
                elif intervention.status is InterventionStatus.PROCESSING:
                    # The turn that claimed it never finished
                    intervention.status = InterventionStatus.QUEUED
                entries[intervention.id] = intervention
            self._entries[debate_id] = entries
        logger.info("Loaded %s intervention(s) for debate %s", len(stored), debate_id)
        return len(stored)

    async def clear(self, debate_id: str, delete_persisted: bool = False) -> None:
        """Forget a debate's queue; optionally delete its rows too."""
        async with self._lock(debate_id):
            self._entries.pop(debate_id, None)
            if delete_persisted:
                deleted = await self._store.delete_by_debate(debate_id)
                logger.info("Deleted %s intervention(s) for debate %s", deleted, debate_id)
        self._locks.pop(debate_id, None)
