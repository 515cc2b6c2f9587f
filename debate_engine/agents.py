"""Agent invocation boundary between the orchestrator and the model layer."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

from .errors import AgentError
from .prompt_builder import PromptBuilder, PromptContext
from .types import Speaker

if TYPE_CHECKING:
    from models.manager import ModelManager

logger = logging.getLogger(__name__)


class AgentInvoker(Protocol):
    """Produces the content for one speaker and one prompt context.

    Implementations raise AgentError on failure. Timeouts and retries are the
    caller's concern. An invoker may also offer `generation_details(speaker)`,
    returning model, token and timing details of that speaker's last reply; they
    are merged into the utterance metadata.
    """

    async def invoke(self, speaker: Speaker, context: PromptContext) -> str: ...


class ModelAgentInvoker:
    """AgentInvoker backed by ModelManager, one registered model per role."""

    def __init__(
        self,
        model_manager: "ModelManager",
        prompt_builder: PromptBuilder,
        role_models: dict[Speaker, str] | None = None,
    ):
        self.model_manager = model_manager
        self.prompt_builder = prompt_builder
        self.role_models = role_models or {
            Speaker.PRO: "pro",
            Speaker.CON: "con",
            Speaker.MODERATOR: "moderator",
        }
        self._last_generation: dict[Speaker, dict[str, Any]] = {}

    async def invoke(self, speaker: Speaker, context: PromptContext) -> str:
        model_id = self.role_models.get(speaker)
        if model_id is None:
            raise AgentError(f"No model configured for {speaker.value}")

        messages = self.prompt_builder.build_messages(context)
        overrides = {}
        if context.max_tokens:
            overrides["max_tokens"] = context.max_tokens

        try:
            metadata = await self.model_manager.generate_response_with_metadata(
                model_id, messages, **overrides
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise AgentError(f"{speaker.value} model {model_id} failed: {e}") from e

        self._last_generation[speaker] = {
            "model": metadata.model,
            "provider": metadata.provider,
            "generation_time_ms": metadata.generation_time_ms,
            "total_tokens": metadata.total_tokens,
        }
        return metadata.content

    def generation_details(self, speaker: Speaker) -> dict[str, Any]:
        return dict(self._last_generation.get(speaker, {}))
