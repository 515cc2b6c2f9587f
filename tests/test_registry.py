"""Tests for the process-wide orchestrator registry."""

import asyncio

import pytest

from conftest import GatedInvoker
from debate_engine.registry import DebateSession, OrchestratorRegistry
from debate_engine.types import DebatePhase


def test_register_and_lookup(make_orchestrator) -> None:
    async def scenario() -> None:
        registry = OrchestratorRegistry()
        session = DebateSession(make_orchestrator(debate_id="debate-a"))

        await registry.register(session)

        assert registry.get("debate-a") is session
        assert "debate-a" in registry
        assert "debate-b" not in registry
        assert registry.count() == 1
        assert registry.running_ids() == []

        with pytest.raises(ValueError):
            await registry.register(DebateSession(make_orchestrator(debate_id="debate-a")))

        assert await registry.unregister("debate-a") is session
        assert await registry.unregister("debate-a") is None
        assert registry.count() == 0

    asyncio.run(scenario())


def test_shutdown_stops_active_debates(make_orchestrator) -> None:
    async def scenario() -> None:
        registry = OrchestratorRegistry()
        invoker = GatedInvoker()
        orchestrator = make_orchestrator(invoker, debate_id="debate-a")
        session = DebateSession(orchestrator, task=asyncio.create_task(orchestrator.run()))
        idle = DebateSession(make_orchestrator(debate_id="debate-b"))
        await registry.register(session)
        await registry.register(idle)
        await invoker.started.wait()

        assert registry.running_ids() == ["debate-a"]

        await registry.shutdown()

        assert session.task.done()
        state = orchestrator.get_state()
        assert state.current_phase is DebatePhase.ERROR
        assert state.error == "Debate stopped: server shutdown"
        assert idle.orchestrator.get_state().current_phase is DebatePhase.INITIALIZING
        assert registry.running_ids() == []

    asyncio.run(scenario())
