"""Drives one debate from INITIALIZING to COMPLETED (or ERROR)."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Literal, TypeVar

from config.settings import OrchestratorConfig
from formats.base import DebateFormat
from formats.standard import StandardFormat
from .agents import AgentInvoker
from .clock import monotonic_ms
from .errors import (
    AgentFailureError,
    DebateBusyError,
    DebateStoppedError,
    InvalidTransitionError,
    PersistenceError,
    ValidationError,
)
from .events import EventBroadcaster, NullBroadcaster, safe_broadcast
from .interventions import InterventionQueue
from .models import DebateState, Intervention, InterventionInput, PhaseTransitionEvent, Turn, Utterance
from .prompt_builder import SPEAKER_LABELS, PromptBuilder, PromptContext
from .state_machine import DebateStateMachine
from .stores import DebateStores
from .turn_manager import TurnManager
from .types import (
    DebateEventType,
    DebatePhase,
    InterventionType,
    Sleeper,
    Speaker,
    TimeSource,
    TransitionKind,
)
from .validation import ResponseValidator, ValidationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

type TurnDelivery = Callable[[Turn, str, dict[str, Any]], Awaitable[Utterance]]

PAUSE_REQUEST_RESPONSE = "The debate has been paused at the audience's request."


class DebateOrchestrator:
    """Runs the turns of one debate and keeps its state, store and clients in step.

    All mutation of the debate goes through this object. Control calls
    (pause, resume, stop, regenerate) are rejected with DebateBusyError while
    another control call for the same debate is still in progress.
    """

    def __init__(
        self,
        debate_id: str,
        proposition: str,
        invoker: AgentInvoker,
        stores: DebateStores,
        intervention_queue: InterventionQueue,
        broadcaster: EventBroadcaster | None = None,
        config: OrchestratorConfig | None = None,
        debate_format: DebateFormat | None = None,
        prompt_builder: PromptBuilder | None = None,
        validator: ResponseValidator | None = None,
        flow_mode: Literal["auto", "step"] = "auto",
        state_machine: DebateStateMachine | None = None,
        turn_manager: TurnManager | None = None,
        time_source: TimeSource = monotonic_ms,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.debate_id = debate_id
        self.proposition = proposition
        self.invoker = invoker
        self.stores = stores
        self.queue = intervention_queue
        self.broadcaster = broadcaster or NullBroadcaster()
        self.config = config or OrchestratorConfig()
        self.debate_format = debate_format or StandardFormat()
        self.prompt_builder = prompt_builder or PromptBuilder(
            self.debate_format, history_window=self.config.history_window
        )
        self.validator = validator or ResponseValidator()
        self.flow_mode = flow_mode
        self._now = time_source
        self._sleep = sleep

        self.state_machine = state_machine or DebateStateMachine(
            debate_id, self.debate_format, time_source=time_source
        )
        self.turn_manager = turn_manager or TurnManager(self.debate_format)
        self._pending_transitions: list[PhaseTransitionEvent] = []
        self._flush_lock = asyncio.Lock()
        self.state_machine.add_listener(self._pending_transitions.append)

        # (phase, speaker) -> note prepended to that speaker's next prompt
        self.resumption_notes: dict[tuple[DebatePhase, Speaker], str] = {}
        self.delivery: TurnDelivery = self.deliver_turn

        self._history: list[Utterance] = []
        self._completed_turn_ids: set[str] = set()
        self._epoch = time_source()
        self._timestamp_offset = 0
        self._last_timestamp = 0

        self._control_lock = asyncio.Lock()
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._persistence_idle = asyncio.Event()
        self._persistence_idle.set()
        self._inflight_writes = 0
        self._agent_call: asyncio.Future | None = None
        self._generation_details: dict[Speaker, dict[str, Any]] = {}
        self._stopped = False
        self._running = False

    @property
    def history(self) -> list[Utterance]:
        return list(self._history)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def get_state(self) -> DebateState:
        return self.state_machine.state

    def timestamp_ms(self) -> int:
        """Milliseconds since the debate started; never decreases."""
        value = int(self._now() - self._epoch) + self._timestamp_offset
        self._last_timestamp = max(self._last_timestamp, value)
        return self._last_timestamp

    def broadcast(self, event_type: DebateEventType, payload: dict[str, Any]) -> None:
        if self.config.broadcast_events:
            safe_broadcast(self.broadcaster, self.debate_id, event_type, payload)

    def ensure_running(self) -> None:
        """Raise DebateStoppedError once stop() has been called."""
        if self._stopped:
            raise DebateStoppedError(f"Debate {self.debate_id} was stopped")

    async def load_history(self) -> None:
        """Seed the utterance cache and timestamps from the store, for recovered debates."""
        self._history = await self.stores.utterances.list_by_session(self.debate_id)
        for utterance in self._history:
            turn_id = utterance.metadata.get("turn_id")
            if turn_id:
                self._completed_turn_ids.add(turn_id)
        if self._history:
            self._timestamp_offset = max(u.timestamp_ms for u in self._history)
            self._last_timestamp = self._timestamp_offset
        if self.state_machine.is_paused:
            self._resume_event.clear()

    # -- main loop ---------------------------------------------------------

    async def run(self) -> DebateState:
        """Run the debate to a terminal phase. Never raises for debate-level failures."""
        self._running = True
        try:
            await self._prepare()
            while not self.state_machine.is_finished:
                await self._resume_event.wait()
                self.ensure_running()
                await self._process_pause_requests()
                if self.state_machine.is_paused:
                    continue

                turn = self.turn_manager.current_turn()
                if turn is None:
                    await self._finish_phase()
                    continue

                await self._execute_turn(turn)
                self.turn_manager.advance()
                if self.flow_mode == "step" and not self._is_last_turn():
                    await self._step_pause()
        except DebateStoppedError:
            logger.info("Debate %s run loop exited after stop", self.debate_id)
        except (AgentFailureError, PersistenceError) as e:
            await self._fail(str(e))
        except Exception as e:
            logger.exception("Debate %s failed unexpectedly", self.debate_id)
            await self._fail(f"Unexpected error: {type(e).__name__}: {e}")
        finally:
            self._running = False
        return self.state_machine.state

    async def _prepare(self) -> None:
        sm = self.state_machine
        if sm.current_phase is DebatePhase.INITIALIZING:
            entered = sm.initialize()
            await self._flush_transitions()
            self._enter_phase(entered)
            return

        phase = sm.previous_phase if sm.is_paused else sm.current_phase
        if phase is not None and phase.is_speaking_phase and self.turn_manager.phase is not phase:
            self.turn_manager.set_phase(phase)

    def _enter_phase(self, event: PhaseTransitionEvent) -> None:
        # A pause may already have landed while the transition was being persisted
        phase = event.to_phase
        turns = self.turn_manager.set_phase(phase)
        metadata = self.debate_format.get_phase_metadata(phase)
        self.broadcast(
            DebateEventType.PHASE_START,
            {
                "phase": phase.value,
                "name": metadata.name,
                "turn_count": len(turns),
                "duration_minutes": metadata.duration_minutes,
                "speaker": event.speaker.value,
            },
        )

    async def _finish_phase(self) -> None:
        sm = self.state_machine
        finished = sm.current_phase
        self.broadcast(
            DebateEventType.PHASE_COMPLETE,
            {"phase": finished.value, "phase_elapsed_ms": sm.phase_elapsed_ms()},
        )
        entered = sm.advance_phase()
        await self._flush_transitions()

        if entered.to_phase is DebatePhase.COMPLETED:
            self.broadcast(
                DebateEventType.DEBATE_COMPLETE,
                {
                    "total_utterances": len(self._history),
                    "total_elapsed_ms": sm.total_elapsed_ms(),
                },
            )
            logger.info("Debate %s completed with %s utterances", self.debate_id, len(self._history))
            return
        self._enter_phase(entered)

    def _is_last_turn(self) -> bool:
        phase = self.turn_manager.phase
        return (
            phase is not None
            and self.turn_manager.current_turn() is None
            and self.debate_format.next_phase(phase) is DebatePhase.COMPLETED
        )

    # -- turns -------------------------------------------------------------

    async def _execute_turn(self, turn: Turn) -> None:
        if turn.turn_id in self._completed_turn_ids:
            logger.warning("Turn %s already executed, skipping", turn.turn_id)
            return

        if self.state_machine.set_speaker(turn.speaker) is not None:
            await self._flush_transitions()

        interventions = await self.queue.claim_for_turn(
            self.debate_id,
            turn.speaker,
            include_clarifications=turn.turn_number == 1,
        )
        self.broadcast(
            DebateEventType.TURN_STARTED,
            {
                "turn_id": turn.turn_id,
                "phase": turn.phase.value,
                "turn_number": turn.turn_number,
                "speaker": turn.speaker.value,
                "prompt_type": turn.prompt_type.value,
                "intervention_ids": [i.id for i in interventions],
            },
        )

        resumption_note = self.resumption_notes.pop((turn.phase, turn.speaker), None)
        if resumption_note is not None:
            self.broadcast(
                DebateEventType.SPEAKING_RESUMED,
                {"speaker": turn.speaker.value, "turn_id": turn.turn_id},
            )
        context = self.prompt_builder.build_context(
            self.debate_id,
            self.proposition,
            turn,
            self._history,
            interventions=interventions,
            resumption_note=resumption_note,
        )

        try:
            result = await self._generate_valid(turn.speaker, turn, context)
        except AgentFailureError:
            await self._abandon(interventions)
            raise
        except DebateStoppedError:
            await self._release(interventions)
            raise

        if not result.is_valid:
            await self._release(interventions)
            utterance = await self._record_skip(turn, result.errors)
        else:
            metadata = self._turn_metadata(turn)
            metadata.update(self.take_generation_details(turn.speaker))
            metadata["flags"] = result.flags
            if interventions:
                metadata["intervention_ids"] = [i.id for i in interventions]
            utterance = await self.delivery(turn, result.content, metadata)
            if utterance.metadata.get("interrupted"):
                # Cut short before it could answer; the speaker's next turn takes them up
                await self._release(interventions)
            else:
                await self._answer_interventions(interventions, utterance)

        self._completed_turn_ids.add(turn.turn_id)
        self.broadcast(
            DebateEventType.TURN_COMPLETED,
            {
                "turn_id": turn.turn_id,
                "utterance_id": utterance.id,
                "speaker": utterance.speaker.value,
                "skipped": bool(utterance.metadata.get("skipped")),
            },
        )

    def _turn_metadata(self, turn: Turn) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "turn_id": turn.turn_id,
            "turn_number": turn.turn_number,
            "prompt_type": turn.prompt_type.value,
        }
        if turn.responds_to is not None:
            metadata["responds_to"] = turn.responds_to
        for key in ("round", "category"):
            if key in turn.metadata:
                metadata[key] = turn.metadata[key]
        return metadata

    async def deliver_turn(self, turn: Turn, content: str, metadata: dict[str, Any]) -> Utterance:
        """Default delivery: persist the whole response as one utterance."""
        return await self.record_utterance(turn.phase, turn.speaker, content, metadata)

    async def record_utterance(
        self,
        phase: DebatePhase,
        speaker: Speaker,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Utterance:
        """Append an utterance to the store, the history and the client stream."""
        self.ensure_running()
        utterance = Utterance(
            debate_id=self.debate_id,
            timestamp_ms=self.timestamp_ms(),
            phase=phase,
            speaker=speaker,
            content=content,
            metadata=metadata or {},
        )
        utterance.id = await self.persist(
            f"utterance from {speaker.value}", lambda: self.stores.utterances.append(utterance)
        )
        self._history.append(utterance)
        self.broadcast(DebateEventType.UTTERANCE, utterance.to_dict())
        return utterance

    async def _record_skip(self, turn: Turn, errors: list[str]) -> Utterance:
        logger.warning(
            "Skipping turn %s after %s failed validation attempt(s): %s",
            turn.turn_id, self.config.max_validation_attempts, "; ".join(errors),
        )
        metadata = self._turn_metadata(turn)
        metadata.update(
            {"skipped": True, "skipped_speaker": turn.speaker.value, "validation_errors": errors}
        )
        content = (
            f"{SPEAKER_LABELS[turn.speaker]} did not produce a usable response for this turn. "
            "The debate continues."
        )
        return await self.record_utterance(turn.phase, Speaker.SYSTEM, content, metadata)

    async def _answer_interventions(self, interventions: list[Intervention], utterance: Utterance) -> None:
        for intervention in interventions:
            await self.persist(
                f"response to intervention {intervention.id}",
                lambda i=intervention: self.queue.mark_completed(
                    self.debate_id, i.id, utterance.content, utterance.timestamp_ms
                ),
            )
            self.broadcast(
                DebateEventType.INTERVENTION_RESPONSE,
                {
                    "intervention_id": intervention.id,
                    "response": utterance.content,
                    "response_timestamp_ms": utterance.timestamp_ms,
                    "speaker": utterance.speaker.value,
                },
            )

    async def _release(self, interventions: list[Intervention]) -> None:
        for intervention in interventions:
            try:
                await self.queue.requeue(self.debate_id, intervention.id)
            except Exception as e:
                logger.warning(f"Could not requeue intervention {intervention.id}: {e}")

    async def _abandon(self, interventions: list[Intervention]) -> None:
        """Mark interventions failed when the turn meant to answer them cannot complete."""
        for intervention in interventions:
            try:
                await self.queue.mark_failed(self.debate_id, intervention.id)
            except Exception as e:
                logger.warning(f"Could not mark intervention {intervention.id} failed: {e}")

    # -- generation --------------------------------------------------------

    async def _generate_valid(
        self, speaker: Speaker, turn: Turn | None, context: PromptContext
    ) -> ValidationResult:
        """Generate until the validator accepts, within max_validation_attempts.

        Returns an invalid result when attempts run out and the policy is "skip".
        """
        prompt_type = turn.prompt_type if turn else context.prompt_type
        result = ValidationResult(content="")
        for attempt in range(1, self.config.max_validation_attempts + 1):
            raw = await self.invoke_with_retry(speaker, context)
            if not self.config.validate_utterances:
                return ValidationResult(content=raw.strip())
            result = self.validator.validate(raw, speaker, prompt_type, context.word_limit)
            if result.is_valid:
                return result
            logger.warning(
                "Validation attempt %s/%s for %s failed: %s",
                attempt, self.config.max_validation_attempts, speaker.value, "; ".join(result.errors),
            )

        if self.config.on_validation_exhausted == "fail":
            raise AgentFailureError(
                speaker, self.config.max_validation_attempts, ValidationError(result.errors)
            )
        return result

    async def invoke_with_retry(self, speaker: Speaker, context: PromptContext) -> str:
        """Call the agent with a hard timeout and exponential backoff between attempts."""
        timeout = self.config.agent_timeout_ms / 1000
        last_error: BaseException | None = None

        for attempt in range(1, self.config.max_retries + 1):
            self.ensure_running()
            started = self._now()
            self._agent_call = asyncio.ensure_future(self.invoker.invoke(speaker, context))
            try:
                content = await asyncio.wait_for(self._agent_call, timeout=timeout)
                self._generation_details[speaker] = self._describe_generation(speaker, started)
                return content
            except TimeoutError as e:
                last_error = e
                logger.warning(
                    "Agent %s timed out after %sms (attempt %s/%s)",
                    speaker.value, self.config.agent_timeout_ms, attempt, self.config.max_retries,
                )
            except asyncio.CancelledError:
                if self._stopped:
                    raise DebateStoppedError(f"Debate {self.debate_id} was stopped") from None
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Agent {speaker.value} failed (attempt {attempt}/{self.config.max_retries}): {e}"
                )
            finally:
                self._agent_call = None

            if attempt < self.config.max_retries:
                delay_ms = min(
                    self.config.retry_delay_ms * 2 ** (attempt - 1), self.config.max_retry_delay_ms
                )
                await self._sleep(delay_ms / 1000)

        raise AgentFailureError(speaker, self.config.max_retries, last_error)

    def take_generation_details(self, speaker: Speaker) -> dict[str, Any]:
        """Model, token and latency details of the speaker's last successful call."""
        return self._generation_details.pop(speaker, {})

    def _describe_generation(self, speaker: Speaker, started: float) -> dict[str, Any]:
        """Latency of the successful call plus whatever the invoker reports about its model."""
        details: dict[str, Any] = {"generation_time_ms": int(self._now() - started)}
        describe = getattr(self.invoker, "generation_details", None)
        if describe is not None:
            details.update({k: v for k, v in describe(speaker).items() if v is not None})
        return details

    # -- persistence -------------------------------------------------------

    async def persist(self, description: str, write: Callable[[], Awaitable[T]]) -> T:
        """Run a store write with bounded retries; raise PersistenceError when they run out."""
        self._inflight_writes += 1
        self._persistence_idle.clear()
        last_error: Exception | None = None
        try:
            for attempt in range(1, self.config.persistence_retries + 1):
                try:
                    return await write()
                except Exception as e:
                    last_error = e
                    logger.warning(
                        f"Persisting {description} failed "
                        f"(attempt {attempt}/{self.config.persistence_retries}): {e}"
                    )
                if attempt < self.config.persistence_retries:
                    await self._sleep(self.config.persistence_retry_delay_ms / 1000)
            raise PersistenceError(
                f"Could not persist {description} after "
                f"{self.config.persistence_retries} attempt(s): {last_error}"
            ) from last_error
        finally:
            self._inflight_writes -= 1
            if self._inflight_writes == 0:
                self._persistence_idle.set()

    async def _flush_transitions(self, strict: bool = True) -> None:
        """Persist and broadcast the state machine events collected so far, in order."""
        async with self._flush_lock:
            while self._pending_transitions:
                event = self._pending_transitions.pop(0)
                if event.kind is TransitionKind.SPEAKER_CHANGE:
                    continue
                try:
                    await self.persist(
                        f"{event.kind.value} transition",
                        lambda e=event: self.stores.transitions.append(e),
                    )
                except PersistenceError:
                    if strict:
                        raise
                    logger.error("Dropped %s transition for debate %s", event.kind.value, self.debate_id)
                self.broadcast(DebateEventType.PHASE_TRANSITION, event.to_dict())

    async def _fail(self, message: str) -> None:
        if self.state_machine.is_finished:
            return
        self.state_machine.fail(message)
        await self._flush_transitions(strict=False)
        self.broadcast(DebateEventType.ERROR, {"error": message})

    # -- control -----------------------------------------------------------

    def _acquire_control(self) -> asyncio.Lock:
        if self._control_lock.locked():
            raise DebateBusyError(self.debate_id)
        return self._control_lock

    async def pause(self, reason: str = "user") -> DebateState:
        """Stop new turns from starting. An in-flight agent call still completes."""
        async with self._acquire_control():
            self.state_machine.pause()
            self._resume_event.clear()
            await self._flush_transitions()
            self.broadcast(DebateEventType.DEBATE_PAUSED, {"reason": reason})
            return self.state_machine.state

    async def resume(self) -> DebateState:
        async with self._acquire_control():
            self.state_machine.resume()
            await self._flush_transitions()
            self.broadcast(
                DebateEventType.DEBATE_RESUMED,
                {"phase": self.state_machine.current_phase.value},
            )
            # Wake the run loop only once the control lock is about to be released
            self._resume_event.set()
            return self.state_machine.state

    async def _step_pause(self) -> None:
        if self._control_lock.locked() or not self.state_machine.current_phase.is_speaking_phase:
            return
        await self.pause(reason="step")

    async def stop(self, reason: str = "stopped by user") -> DebateState:
        """Cancel the in-flight agent call, wait for pending writes, then mark ERROR."""
        async with self._acquire_control():
            if self.state_machine.is_finished:
                return self.state_machine.state
            self._stopped = True
            self._resume_event.set()
            if self._agent_call is not None and not self._agent_call.done():
                self._agent_call.cancel()
            await self._persistence_idle.wait()

            message = f"Debate stopped: {reason}"
            self.state_machine.fail(message)
            await self._flush_transitions(strict=False)
            self.broadcast(DebateEventType.DEBATE_STOPPED, {"reason": reason})
            logger.info("Debate %s stopped: %s", self.debate_id, reason)
            return self.state_machine.state

    # -- interventions -----------------------------------------------------

    async def submit_intervention(self, data: InterventionInput) -> Intervention:
        """Queue an intervention; pause requests take effect right away."""
        if self.state_machine.is_finished:
            raise ValueError(f"Debate {self.debate_id} has already finished")
        intervention = await self.queue.add(self.debate_id, data, self.timestamp_ms())
        self.broadcast(DebateEventType.INTERVENTION_SUBMITTED, intervention.to_dict())
        if intervention.intervention_type is InterventionType.PAUSE_REQUEST:
            await self._process_pause_requests()
        return intervention

    async def _process_pause_requests(self) -> None:
        requests = await self.queue.pending_pause_requests(self.debate_id)
        if not requests or not self.state_machine.current_phase.is_speaking_phase:
            return
        try:
            await self.pause(reason="pause_request")
        except (DebateBusyError, InvalidTransitionError) as e:
            logger.info(f"Pause request for debate {self.debate_id} deferred: {e}")
            return
        timestamp = self.timestamp_ms()
        for request in requests:
            await self.queue.mark_completed(self.debate_id, request.id, PAUSE_REQUEST_RESPONSE, timestamp)
            self.broadcast(
                DebateEventType.INTERVENTION_RESPONSE,
                {
                    "intervention_id": request.id,
                    "response": PAUSE_REQUEST_RESPONSE,
                    "response_timestamp_ms": timestamp,
                    "speaker": Speaker.SYSTEM.value,
                },
            )

    # -- regeneration ------------------------------------------------------

    async def regenerate_utterance(self, utterance_id: int) -> Utterance:
        """Re-run the agent for an existing utterance and replace its content in place."""
        async with self._acquire_control():
            if self._running and not self.state_machine.is_paused:
                raise DebateBusyError(self.debate_id)

            utterance = await self.stores.utterances.get(utterance_id)
            if utterance is None or utterance.debate_id != self.debate_id:
                raise ValueError(f"Utterance {utterance_id} not found in debate {self.debate_id}")
            turn = self._turn_for(utterance)
            if turn is None:
                raise ValueError(f"Utterance {utterance_id} was not produced by a scheduled turn")

            position = next(
                (i for i, u in enumerate(self._history) if u.id == utterance_id), len(self._history)
            )
            context = self.prompt_builder.build_context(
                self.debate_id, self.proposition, turn, self._history[:position]
            )
            result = await self._generate_valid(turn.speaker, turn, context)
            if not result.is_valid:
                raise ValidationError(result.errors)

            metadata = dict(utterance.metadata)
            metadata.update(self.take_generation_details(turn.speaker))
            metadata["flags"] = result.flags
            metadata["regenerated"] = metadata.get("regenerated", 0) + 1
            await self.persist(
                f"regenerated utterance {utterance_id}",
                lambda: self.stores.utterances.replace_content(utterance_id, result.content, metadata),
            )
            utterance.content = result.content
            utterance.metadata = metadata
            if position < len(self._history):
                self._history[position] = utterance

            self.broadcast(DebateEventType.UTTERANCE_REGENERATED, utterance.to_dict())
            logger.info("Regenerated utterance %s in debate %s", utterance_id, self.debate_id)
            return utterance

    def _turn_for(self, utterance: Utterance) -> Turn | None:
        if utterance.speaker is Speaker.SYSTEM or utterance.metadata.get("interjection"):
            return None
        turn_number = utterance.metadata.get("turn_number")
        if turn_number is None or not utterance.phase.is_speaking_phase:
            return None
        for turn in self.debate_format.build_turns(utterance.phase):
            if turn.turn_number == turn_number and turn.speaker is utterance.speaker:
                return turn
        return None
