"""Lifecycle of debates served over HTTP: start, control, state and transcripts."""

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Any

from config.settings import (
    LIVELY_PRESETS,
    AppConfig,
    LivelyPreset,
    LivelySettings,
    ModelConfig,
)
from debate_engine.agents import AgentInvoker, ModelAgentInvoker
from debate_engine.database.database import DatabaseManager, DebateRecord, get_database_path
from debate_engine.errors import DebateNotFoundError
from debate_engine.interventions import InterventionQueue
from debate_engine.lively import InterruptionEngine, LivelyDebateOrchestrator
from debate_engine.models import (
    DebateState,
    Intervention,
    InterventionInput,
    InterruptionRecord,
    Utterance,
)
from debate_engine.orchestrator import DebateOrchestrator
from debate_engine.prompt_builder import PromptBuilder
from debate_engine.recovery import recover_debate
from debate_engine.registry import DebateSession, OrchestratorRegistry
from debate_engine.state_machine import DebateStateMachine
from debate_engine.stores import DebateStores
from debate_engine.transcript import TranscriptDocument, TranscriptManager
from debate_engine.turn_manager import TurnManager
from debate_engine.types import InterruptionOutcome, InterventionStatus, InterventionType, Speaker
from formats import format_registry
from models.manager import ModelManager
from web.broadcaster import SSEBroadcaster
from web.debate_setup_request import DebateSetupRequest

logger = logging.getLogger(__name__)

type InvokerFactory = Callable[[dict[str, ModelConfig], PromptBuilder], AgentInvoker]


class DebateManager:
    """Owns the registry of running debates and the shared stores."""

    def __init__(
        self,
        config: AppConfig,
        db: DatabaseManager | None = None,
        broadcaster: SSEBroadcaster | None = None,
        invoker_factory: InvokerFactory | None = None,
    ):
        self.config = config
        self.db = db or DatabaseManager(get_database_path(config.system.database_path))
        self.stores = DebateStores.sqlite(self.db)
        self.queue = InterventionQueue(self.stores.interventions)
        self.broadcaster = broadcaster or SSEBroadcaster(config.system.event_queue_size)
        self.registry = OrchestratorRegistry()
        self._invoker_factory = invoker_factory or self._model_invoker

    def _model_invoker(self, models: dict[str, ModelConfig], prompt_builder: PromptBuilder) -> AgentInvoker:
        model_manager = ModelManager(self.config.system)
        for role, model_config in models.items():
            model_manager.register_model(role, model_config)
        return ModelAgentInvoker(model_manager, prompt_builder)

    # -- lifecycle ---------------------------------------------------------

    async def start_debate(self, setup: DebateSetupRequest) -> DebateSession:
        """Persist the debate row, build its orchestrator and launch the run task."""
        debate_format = format_registry.get_format(setup.format)
        models = setup.models or self.config.models
        debate_id = str(uuid.uuid4())

        lively_settings = None
        if setup.lively:
            lively_settings = self._initial_lively_settings(setup)

        await asyncio.to_thread(
            self.db.create_debate,
            debate_id,
            setup.proposition,
            debate_format.name,
            setup.lively,
            setup.model_dump(mode="json", exclude={"models"}),
        )
        if lively_settings is not None:
            await asyncio.to_thread(
                self.db.save_lively_settings, debate_id, lively_settings.model_dump(mode="json")
            )

        session = self._build_session(
            debate_id,
            setup.proposition,
            debate_format.name,
            models,
            word_limit=setup.word_limit,
            flow_mode=setup.flow_mode,
            lively_settings=lively_settings,
        )
        await self._launch(session)
        logger.info(
            f"Started debate {debate_id} ({debate_format.name}, lively={setup.lively}): {setup.proposition}"
        )
        return session

    def _initial_lively_settings(self, setup: DebateSetupRequest) -> LivelySettings:
        if setup.lively_preset:
            base = LivelySettings.from_preset(setup.lively_preset).model_dump()
        else:
            base = self.config.lively.model_dump()
        base.update(setup.lively_settings or {})
        return LivelySettings.model_validate(base)

    def _build_session(
        self,
        debate_id: str,
        proposition: str,
        format_name: str,
        models: dict[str, ModelConfig],
        word_limit: int | None = None,
        flow_mode: str = "auto",
        lively_settings: LivelySettings | None = None,
        state_machine: DebateStateMachine | None = None,
        turn_manager: TurnManager | None = None,
    ) -> DebateSession:
        debate_format = format_registry.get_format(format_name)
        prompt_builder = PromptBuilder(
            debate_format,
            word_limit=word_limit or self.config.debate.word_limit,
            history_window=self.config.orchestrator.history_window,
        )
        orchestrator = DebateOrchestrator(
            debate_id,
            proposition,
            self._invoker_factory(models, prompt_builder),
            self.stores,
            self.queue,
            broadcaster=self.broadcaster,
            config=self.config.orchestrator,
            debate_format=debate_format,
            prompt_builder=prompt_builder,
            flow_mode=flow_mode,
            state_machine=state_machine,
            turn_manager=turn_manager,
        )
        lively = None
        if lively_settings is not None:
            lively = LivelyDebateOrchestrator(orchestrator, lively_settings, InterruptionEngine())
        return DebateSession(orchestrator=orchestrator, lively=lively)

    async def _launch(self, session: DebateSession) -> None:
        await self.registry.register(session)
        runner = session.lively or session.orchestrator
        session.task = asyncio.create_task(self._run(session.debate_id, runner))

    async def _run(self, debate_id: str, runner: DebateOrchestrator | LivelyDebateOrchestrator) -> None:
        try:
            state = await runner.run()
            logger.info(f"Debate {debate_id} finished in {state.current_phase.value}")
        except asyncio.CancelledError:
            logger.info(f"Debate task {debate_id} cancelled")
            raise
        finally:
            await self.registry.unregister(debate_id)
            await self.queue.clear(debate_id)

    async def shutdown(self) -> None:
        await self.registry.shutdown()

    # -- lookups -----------------------------------------------------------

    async def _record(self, debate_id: str) -> DebateRecord:
        record = await asyncio.to_thread(self.db.get_debate, debate_id)
        if record is None:
            raise DebateNotFoundError(debate_id)
        return record

    async def _session(self, debate_id: str) -> DebateSession:
        """The running session, or ValueError if the debate exists but is not running."""
        session = self.registry.get(debate_id)
        if session is not None:
            return session
        await self._record(debate_id)
        raise ValueError(f"Debate {debate_id} is not running")

    async def restore_debate(self, debate_id: str) -> DebateSession:
        """Rebuild an unfinished debate from storage and relaunch it.

        A debate that was paused when the process stopped comes back paused.
        """
        if debate_id in self.registry:
            return self.registry.get(debate_id)
        record = await self._record(debate_id)
        debate_format = format_registry.get_format(record["format"])
        recovered = await recover_debate(debate_id, self.stores, debate_format)
        if recovered is not None and recovered.state_machine.is_finished:
            raise ValueError(f"Debate {debate_id} has already finished")

        lively_settings = None
        if record["lively"]:
            stored = await asyncio.to_thread(self.db.load_lively_settings, debate_id)
            lively_settings = LivelySettings.model_validate(stored) if stored else self.config.lively

        options = record["config"]
        session = self._build_session(
            debate_id,
            record["proposition"],
            record["format"],
            self.config.models,
            word_limit=options.get("word_limit"),
            flow_mode=options.get("flow_mode", "auto"),
            lively_settings=lively_settings,
            state_machine=recovered.state_machine if recovered else None,
            turn_manager=recovered.turn_manager if recovered else None,
        )
        await session.orchestrator.load_history()
        await self.queue.load_from_store(debate_id)
        await self._launch(session)
        logger.info(f"Restored debate {debate_id}")
        return session

    # -- control -----------------------------------------------------------

    async def pause(self, debate_id: str) -> DebateState:
        session = await self._session(debate_id)
        return await session.orchestrator.pause()

    async def resume(self, debate_id: str) -> DebateState:
        """Resume a paused debate, restoring it from storage when it is not in memory."""
        session = self.registry.get(debate_id) or await self.restore_debate(debate_id)
        orchestrator = session.orchestrator
        if not orchestrator.state_machine.is_paused:
            return orchestrator.get_state()
        return await orchestrator.resume()

    async def stop(self, debate_id: str, reason: str = "stopped by user") -> DebateState:
        session = await self._session(debate_id)
        state = await session.orchestrator.stop(reason)
        if session.task is not None:
            await asyncio.gather(session.task, return_exceptions=True)
        return state

    async def regenerate(self, debate_id: str, utterance_id: int) -> Utterance:
        session = await self._session(debate_id)
        return await session.orchestrator.regenerate_utterance(utterance_id)

    # -- interventions -----------------------------------------------------

    async def submit_intervention(self, debate_id: str, data: InterventionInput) -> Intervention:
        session = await self._session(debate_id)
        return await session.orchestrator.submit_intervention(data)

    async def list_interventions(
        self,
        debate_id: str,
        status: InterventionStatus | None = None,
        intervention_type: InterventionType | None = None,
        directed_to: Speaker | None = None,
    ) -> list[Intervention]:
        if debate_id not in self.registry:
            await self._record(debate_id)
        return await self.queue.list_interventions(debate_id, status, intervention_type, directed_to)

    # -- state and transcript ----------------------------------------------

    async def get_state(self, debate_id: str) -> dict[str, Any]:
        """Live state for running debates; recovered from storage otherwise."""
        record = await self._record(debate_id)
        session = self.registry.get(debate_id)
        if session is not None:
            orchestrator = session.orchestrator
            state = orchestrator.get_state()
            utterance_count = len(orchestrator.history)
            progress = orchestrator.turn_manager.progress() if orchestrator.turn_manager.phase else None
            flow_mode = orchestrator.flow_mode
        else:
            debate_format = format_registry.get_format(record["format"])
            recovered = await recover_debate(debate_id, self.stores, debate_format)
            if recovered is None:
                state = DebateStateMachine(debate_id, debate_format).state
                progress = None
            else:
                state = recovered.state_machine.state
                tm = recovered.turn_manager
                progress = tm.progress() if tm.phase else None
            utterance_count = await self.stores.utterances.count(debate_id)
            flow_mode = record["config"].get("flow_mode", "auto")

        return {
            "record": record,
            "state": state,
            "utterance_count": utterance_count,
            "flow_mode": flow_mode,
            "is_running": session is not None and session.is_active,
            "progress": progress,
        }

    async def get_transcript(self, debate_id: str) -> TranscriptDocument:
        info = await self.get_state(debate_id)
        record = info["record"]
        manager = TranscriptManager(self.stores, format_registry.get_format(record["format"]))
        return await manager.build(record["proposition"], info["state"])

    # -- lively ------------------------------------------------------------

    @staticmethod
    def presets() -> list[LivelyPreset]:
        return list(LIVELY_PRESETS.values())

    async def get_lively_settings(self, debate_id: str) -> LivelySettings:
        session = self.registry.get(debate_id)
        if session is not None and session.lively is not None:
            return session.lively.settings
        record = await self._record(debate_id)
        if not record["lively"]:
            raise ValueError(f"Debate {debate_id} is not a lively debate")
        stored = await asyncio.to_thread(self.db.load_lively_settings, debate_id)
        return LivelySettings.model_validate(stored) if stored else self.config.lively

    async def update_lively_settings(
        self, debate_id: str, changes: dict[str, Any], preset: str | None = None
    ) -> LivelySettings:
        """Apply a preset and/or explicit changes to a running lively debate."""
        session = await self._session(debate_id)
        if session.lively is None:
            raise ValueError(f"Debate {debate_id} is not a lively debate")
        if preset is not None:
            merged = LivelySettings.from_preset(preset).model_dump()
            merged.update(changes)
            changes = merged
        settings = session.lively.update_settings(**changes)
        await asyncio.to_thread(self.db.save_lively_settings, debate_id, settings.model_dump(mode="json"))
        return settings

    async def list_interruptions(
        self, debate_id: str, outcome: InterruptionOutcome | None = None
    ) -> list[InterruptionRecord]:
        session = self.registry.get(debate_id)
        if session is not None and session.lively is not None:
            return await session.lively.list_interruptions(outcome)
        await self._record(debate_id)
        return await self.stores.interruptions.list_by_debate(debate_id, outcome)
