"""Tests for the intervention queue and its SQLite write-through."""

import asyncio

import pytest

from debate_engine.interventions import MAX_CONTENT_LENGTH, InterventionQueue
from debate_engine.models import InterventionInput
from debate_engine.stores import DebateStores
from debate_engine.types import InterventionStatus, InterventionType, Speaker

DEBATE_ID = "debate-1"


def question(content: str, directed_to: Speaker | None = None) -> InterventionInput:
    return InterventionInput(InterventionType.QUESTION, content, directed_to)


@pytest.mark.parametrize(
    "data",
    [
        question("   "),
        question("x" * (MAX_CONTENT_LENGTH + 1)),
        question("Who speaks for the system?", Speaker.SYSTEM),
    ],
)
def test_invalid_interventions_are_rejected(stores: DebateStores, data: InterventionInput) -> None:
    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        with pytest.raises(ValueError):
            await queue.add(DEBATE_ID, data, 0)
        assert await queue.list_interventions(DEBATE_ID) == []

    asyncio.run(scenario())


def test_add_strips_and_persists(stores: DebateStores) -> None:
    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        intervention = await queue.add(DEBATE_ID, question("  What about rural riders?  "), 1200)

        stored = await stores.interventions.find_by_id(intervention.id)
        assert stored is not None
        assert stored.content == "What about rural riders?"
        assert stored.timestamp_ms == 1200
        assert stored.status is InterventionStatus.QUEUED

    asyncio.run(scenario())


def test_claim_respects_direction_and_clarifications(stores: DebateStores) -> None:
    """Directed items go to their speaker; clarifications wait for a first turn."""

    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        to_pro = await queue.add(DEBATE_ID, question("PRO, who pays?", Speaker.PRO), 0)
        to_con = await queue.add(DEBATE_ID, question("CON, what about emissions?", Speaker.CON), 1)
        anyone = await queue.add(DEBATE_ID, question("Has any city tried this?"), 2)
        clarify = await queue.add(
            DEBATE_ID,
            InterventionInput(InterventionType.CLARIFICATION_REQUEST, "Define free transport"),
            3,
        )
        pause = await queue.add(
            DEBATE_ID, InterventionInput(InterventionType.PAUSE_REQUEST, "Hold on a moment"), 4
        )

        claimed_pro = await queue.claim_for_turn(DEBATE_ID, Speaker.PRO)
        assert [i.id for i in claimed_pro] == [to_pro.id, anyone.id]
        assert all(i.status is InterventionStatus.PROCESSING for i in claimed_pro)

        claimed_con = await queue.claim_for_turn(DEBATE_ID, Speaker.CON, include_clarifications=True)
        assert [i.id for i in claimed_con] == [to_con.id, clarify.id]

        pauses = await queue.pending_pause_requests(DEBATE_ID)
        assert [p.id for p in pauses] == [pause.id]

        stored = await stores.interventions.find_by_id(to_pro.id)
        assert stored is not None and stored.status is InterventionStatus.PROCESSING

    asyncio.run(scenario())


def test_pending_for_filters_by_type(stores: DebateStores) -> None:
    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        await queue.add(DEBATE_ID, question("A plain question"), 0)
        challenge = await queue.add(
            DEBATE_ID,
            InterventionInput(InterventionType.CHALLENGE, "Ridership fell in Tallinn", Speaker.PRO),
            1,
        )

        pending = await queue.pending_for(DEBATE_ID, Speaker.PRO, types={InterventionType.CHALLENGE})

        assert [i.id for i in pending] == [challenge.id]
        assert challenge.status is InterventionStatus.QUEUED

    asyncio.run(scenario())


def test_mark_completed_records_response(stores: DebateStores) -> None:
    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        intervention = await queue.add(DEBATE_ID, question("Who pays?"), 0)
        await queue.claim_for_turn(DEBATE_ID, Speaker.PRO)

        await queue.mark_completed(DEBATE_ID, intervention.id, "General taxation pays.", 5000)

        answered = await queue.list_interventions(DEBATE_ID, status=InterventionStatus.COMPLETED)
        assert [i.response for i in answered] == ["General taxation pays."]
        stored = await stores.interventions.find_by_id(intervention.id)
        assert stored is not None
        assert stored.response_timestamp_ms == 5000
        assert stored.is_answered
        assert await queue.unanswered_count(DEBATE_ID) == 0

    asyncio.run(scenario())


def test_requeue_makes_intervention_claimable_again(stores: DebateStores) -> None:
    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        intervention = await queue.add(DEBATE_ID, question("Who pays?"), 0)
        await queue.claim_for_turn(DEBATE_ID, Speaker.PRO)
        assert await queue.claim_for_turn(DEBATE_ID, Speaker.PRO) == []

        await queue.requeue(DEBATE_ID, intervention.id)

        assert [i.id for i in await queue.claim_for_turn(DEBATE_ID, Speaker.CON)] == [intervention.id]

    asyncio.run(scenario())


def test_load_from_store_requeues_unfinished_claims(stores: DebateStores) -> None:
    """Interventions claimed by a turn that never finished are queued again after restart."""

    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        claimed = await queue.add(DEBATE_ID, question("Who pays?"), 0)
        answered = await queue.add(DEBATE_ID, question("Is it fair?"), 1)
        await queue.claim_for_turn(DEBATE_ID, Speaker.PRO)
        await queue.mark_completed(DEBATE_ID, answered.id, "Yes.", 10)

        restarted = InterventionQueue(stores.interventions)
        assert await restarted.load_from_store(DEBATE_ID) == 2

        entries = {i.id: i for i in await restarted.list_interventions(DEBATE_ID)}
        assert entries[claimed.id].status is InterventionStatus.QUEUED
        assert entries[answered.id].status is InterventionStatus.COMPLETED

    asyncio.run(scenario())


def test_list_filters_and_store_fallback(stores: DebateStores) -> None:
    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        await queue.add(DEBATE_ID, question("To PRO", Speaker.PRO), 0)
        await queue.add(
            DEBATE_ID, InterventionInput(InterventionType.EVIDENCE_INJECTION, "New survey data"), 1
        )

        directed = await queue.list_interventions(DEBATE_ID, directed_to=Speaker.PRO)
        evidence = await queue.list_interventions(
            DEBATE_ID, intervention_type=InterventionType.EVIDENCE_INJECTION
        )
        assert [i.content for i in directed] == ["To PRO"]
        assert [i.content for i in evidence] == ["New survey data"]

        # A queue that never loaded the debate reads straight from the store
        fresh = InterventionQueue(stores.interventions)
        assert len(await fresh.list_interventions(DEBATE_ID)) == 2

    asyncio.run(scenario())


def test_clear_can_delete_persisted_rows(stores: DebateStores) -> None:
    async def scenario() -> None:
        queue = InterventionQueue(stores.interventions)
        await queue.add(DEBATE_ID, question("Who pays?"), 0)

        await queue.clear(DEBATE_ID)
        assert len(await queue.list_interventions(DEBATE_ID)) == 1

        await queue.clear(DEBATE_ID, delete_persisted=True)
        assert await queue.list_interventions(DEBATE_ID) == []

    asyncio.run(scenario())
