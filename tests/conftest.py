"""Pytest configuration and shared fixtures.

Everything time-related is driven by FakeClock: the orchestrator, the state
machine and the lively scheduler all read it, and the fake sleep advances it
instead of waiting. Agents are scripted so whole debates run offline in
milliseconds.
"""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest

from config.settings import OrchestratorConfig
from debate_engine.database.database import DatabaseManager
from debate_engine.errors import AgentError
from debate_engine.interventions import InterventionQueue
from debate_engine.orchestrator import DebateOrchestrator
from debate_engine.prompt_builder import PromptContext
from debate_engine.stores import DebateStores
from debate_engine.types import DebateEventType, PromptType, Speaker

PROPOSITION = "Cities should make public transport free at the point of use."

ARGUMENTS = {
    Speaker.PRO: (
        "Free public transport raises ridership, cuts congestion and gives every resident "
        "access to jobs and services. Cities that removed fares saw ridership climb quickly."
    ),
    Speaker.CON: (
        "Removing fares drains the budget that pays for maintenance and new routes. Riders "
        "value frequency and reliability far more than a lower ticket price."
    ),
}

QUESTIONS = {
    Speaker.PRO: "If fares fund maintenance, why do fare-free cities report no drop in service quality?",
    Speaker.CON: "Where will the lost fare revenue come from without cutting service elsewhere?",
}

MODERATOR_TEXT = (
    "Both sides have set out their positions. PRO stresses access and ridership while CON "
    "stresses funding and reliability. These tensions will shape the rest of the debate."
)

INTERJECTION_TEXT = "That is not true, fares fund only a fraction of maintenance budgets."


def default_response(speaker: Speaker, prompt_type: PromptType) -> str:
    if prompt_type is PromptType.INTERJECTION:
        return INTERJECTION_TEXT
    if speaker is Speaker.MODERATOR:
        return MODERATOR_TEXT
    if prompt_type is PromptType.CROSS_EXAM_QUESTION:
        return QUESTIONS[speaker]
    return ARGUMENTS[speaker]


class FakeClock:
    """Millisecond time source that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class ScriptedInvoker:
    """AgentInvoker double: canned text per role, optional scripted failures and replies."""

    def __init__(
        self,
        failures: dict[Speaker, int] | None = None,
        replies: dict[Speaker, list[str]] | None = None,
    ):
        self.failures = dict(failures or {})
        self.replies = {speaker: list(texts) for speaker, texts in (replies or {}).items()}
        self.calls: list[tuple[Speaker, PromptContext]] = []

    async def invoke(self, speaker: Speaker, context: PromptContext) -> str:
        self.calls.append((speaker, context))
        await asyncio.sleep(0)
        if self.failures.get(speaker, 0) > 0:
            self.failures[speaker] -= 1
            raise AgentError(f"scripted failure for {speaker.value}")
        queued = self.replies.get(speaker)
        if queued:
            return queued.pop(0)
        return default_response(speaker, context.prompt_type)

    def prompt_types(self, speaker: Speaker | None = None) -> list[PromptType]:
        return [c.prompt_type for s, c in self.calls if speaker is None or s is speaker]


class GatedInvoker(ScriptedInvoker):
    """Blocks the first call until the test opens the gate."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self.started = asyncio.Event()
        self.gate = asyncio.Event()

    async def invoke(self, speaker: Speaker, context: PromptContext) -> str:
        if not self.gate.is_set():
            self.started.set()
            await self.gate.wait()
        return await super().invoke(speaker, context)


class RecordingBroadcaster:
    """EventBroadcaster that keeps every event in order."""

    def __init__(self):
        self.events: list[tuple[str, DebateEventType, dict[str, Any]]] = []

    def broadcast(self, debate_id: str, event_type: DebateEventType, payload: dict[str, Any]) -> None:
        self.events.append((debate_id, event_type, payload))

    def types(self) -> list[DebateEventType]:
        return [event_type for _, event_type, _ in self.events]

    def payloads(self, event_type: DebateEventType) -> list[dict[str, Any]]:
        return [payload for _, kind, payload in self.events if kind is event_type]


def fast_config(**overrides: Any) -> OrchestratorConfig:
    """Retry and timeout policy without real waiting."""
    values: dict[str, Any] = {
        "retry_delay_ms": 100,
        "max_retry_delay_ms": 1000,
        "agent_timeout_ms": 2000,
        "persistence_retry_delay_ms": 0,
    }
    values.update(overrides)
    return OrchestratorConfig(**values)


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Yield to the loop until `predicate` holds; store writes run in worker threads."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition never became true")
        await asyncio.sleep(0.001)


# =============================================================================
# SHARED FIXTURES
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1_000_000.0)


@pytest.fixture
def fake_sleep(clock: FakeClock) -> Callable[[float], Awaitable[None]]:
    """asyncio.sleep replacement that advances the fake clock."""

    async def sleep(seconds: float) -> None:
        clock.sleeps.append(seconds)
        clock.advance(seconds * 1000)
        await asyncio.sleep(0)

    return sleep


@pytest.fixture
def db(tmp_path: Path) -> DatabaseManager:
    return DatabaseManager(tmp_path / "debates.db")


@pytest.fixture
def stores(db: DatabaseManager) -> DebateStores:
    return DebateStores.sqlite(db)


@pytest.fixture
def make_orchestrator(
    stores: DebateStores, clock: FakeClock, fake_sleep: Callable[[float], Awaitable[None]]
) -> Callable[..., DebateOrchestrator]:
    """Factory for orchestrators wired to the fake clock and a recording broadcaster."""

    def factory(
        invoker: ScriptedInvoker | None = None,
        config: OrchestratorConfig | None = None,
        debate_id: str = "debate-1",
        **kwargs: Any,
    ) -> DebateOrchestrator:
        return DebateOrchestrator(
            debate_id,
            PROPOSITION,
            invoker or ScriptedInvoker(),
            stores,
            InterventionQueue(stores.interventions),
            broadcaster=RecordingBroadcaster(),
            config=config or fast_config(),
            time_source=clock,
            sleep=fake_sleep,
            **kwargs,
        )

    return factory


# =============================================================================
# PYTEST CONFIGURATION HOOKS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
