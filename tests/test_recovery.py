"""Rebuilding debates from the persisted logs after a restart."""

import asyncio

from conftest import ScriptedInvoker, wait_until
from debate_engine.models import Utterance
from debate_engine.recovery import completed_turn_count, recover_debate
from debate_engine.types import DebateEventType, DebatePhase, PromptType, Speaker


class BlockingInvoker(ScriptedInvoker):
    """Hangs forever on the n-th call, like a process that dies mid-turn."""

    def __init__(self, block_at: int):
        super().__init__()
        self.block_at = block_at
        self.blocked = asyncio.Event()

    async def invoke(self, speaker, context) -> str:
        if len(self.calls) + 1 == self.block_at:
            self.calls.append((speaker, context))
            self.blocked.set()
            await asyncio.Event().wait()
        return await super().invoke(speaker, context)


def test_completed_turns_ignore_interjections() -> None:
    phase = DebatePhase.PHASE_2_CONSTRUCTIVE
    utterances = [
        Utterance("d", 0, DebatePhase.PHASE_1_OPENING, Speaker.PRO, "x", {"turn_id": "opening"}),
        Utterance("d", 1, phase, Speaker.PRO, "x", {"turn_id": "t1", "interrupted": True}),
        Utterance("d", 2, phase, Speaker.CON, "x", {"interjection": True}),
        Utterance("d", 3, phase, Speaker.CON, "x", {"turn_id": "t2"}),
    ]

    assert completed_turn_count(utterances, phase) == 2
    assert completed_turn_count(utterances, DebatePhase.PHASE_3_CROSSEXAM) == 0


def test_nothing_to_recover_without_transitions(stores) -> None:
    assert asyncio.run(recover_debate("never-started", stores)) is None


def test_paused_debate_resumes_where_it_left_off(make_orchestrator, stores, clock) -> None:
    async def scenario() -> None:
        first = make_orchestrator(flow_mode="step")
        task = asyncio.create_task(first.run())

        def pauses() -> int:
            return len(first.broadcaster.payloads(DebateEventType.DEBATE_PAUSED))

        for count in range(1, 5):
            await wait_until(lambda: pauses() == count)
            await first.resume()
        await wait_until(lambda: pauses() == 5)
        assert len(first.history) == 5

        # Simulate the process going away while paused
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        recovered = await recover_debate("debate-1", stores, time_source=clock)

        assert recovered.state_machine.is_paused
        assert recovered.state_machine.previous_phase is DebatePhase.PHASE_2_CONSTRUCTIVE
        assert recovered.completed_turns == 2
        assert recovered.turn_manager.current_turn().turn_number == 3
        assert len(recovered.utterances) == 5

        invoker = ScriptedInvoker()
        second = make_orchestrator(
            invoker,
            state_machine=recovered.state_machine,
            turn_manager=recovered.turn_manager,
        )
        await second.load_history()
        task = asyncio.create_task(second.run())
        await second.resume()
        state = await task

        assert state.current_phase is DebatePhase.COMPLETED
        first_speaker, first_context = invoker.calls[0]
        assert first_speaker is Speaker.PRO
        assert first_context.prompt_type is PromptType.CONSTRUCTIVE_ARGUMENT
        assert first_context.turn.metadata["round"] == 2

        stored = await stores.utterances.list_by_session("debate-1")
        assert len(stored) == 20
        timestamps = [u.timestamp_ms for u in stored]
        assert timestamps == sorted(timestamps)
        assert len({u.metadata["turn_id"] for u in stored}) == 20

    asyncio.run(scenario())


def test_crash_mid_turn_repeats_that_turn(make_orchestrator, stores, clock) -> None:
    async def scenario() -> None:
        invoker = BlockingInvoker(block_at=4)
        orchestrator = make_orchestrator(invoker)
        task = asyncio.create_task(orchestrator.run())
        await invoker.blocked.wait()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        recovered = await recover_debate("debate-1", stores, time_source=clock)

        assert not recovered.state_machine.is_paused
        assert recovered.state_machine.current_phase is DebatePhase.PHASE_2_CONSTRUCTIVE
        assert recovered.completed_turns == 0
        turn = recovered.turn_manager.current_turn()
        assert (turn.turn_number, turn.speaker) == (1, Speaker.PRO)

    asyncio.run(scenario())
