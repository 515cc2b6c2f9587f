import asyncio
import logging
from itertools import count
from typing import TYPE_CHECKING

from .base_model_provider import BaseModelProvider, GenerationMetadata

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)

CANNED_ARGUMENTS = {
    "pro": [
        "The evidence on this proposition points in one direction. Where it has been tried, "
        "outcomes improved measurably, costs fell over time and the people affected reported "
        "greater confidence in the system. Those results are not accidents of one context.",
        "Consider the practical record. Every serious objection raised against this proposal "
        "has been tested somewhere, and in each case the predicted harms either failed to "
        "appear or were smaller than the benefits that followed.",
    ],
    "con": [
        "The case for this proposition rests on optimistic assumptions. The examples offered "
        "are selected from favourable conditions, and they ignore the costs that fall on the "
        "people least able to absorb them. A policy should be judged by its worst outcomes too.",
        "My opponent describes benefits but not trade-offs. Resources spent here are resources "
        "not spent elsewhere, and the long-term risks have not been examined with anything like "
        "the care the short-term gains have received.",
    ],
}

CANNED_QUESTIONS = {
    "pro": "If the risks you describe are so serious, why have the places that adopted this approach not reversed course?",
    "con": "Can you name a single example where the benefits you promise were achieved without the costs I have described?",
}

MODERATOR_TEXT = (
    "Thank you both. We have heard a clear disagreement about evidence and about trade-offs. "
    "The advocate in favour stressed measurable outcomes, while the advocate against stressed "
    "costs and long-term risks. Several questions remain open for the audience to weigh."
)

INTERJECTION_TEXT = {
    "pro": "That simply is not what the evidence shows.",
    "con": "But that ignores who actually pays for it.",
}


class MockProvider(BaseModelProvider):
    """Offline provider returning canned, role-appropriate text."""

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)
        self._counter = count()

    @property
    def provider_name(self) -> str:
        return "mock"

    async def get_available_models(self) -> list[str]:
        return ["mock-debater"]

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        return model_config.provider == "mock"

    @staticmethod
    def _role(messages: list[dict[str, str]]) -> str:
        system_prompt = messages[0]["content"] if messages else ""
        if "You ARE the PRO advocate" in system_prompt:
            return "pro"
        if "You ARE the CON advocate" in system_prompt:
            return "con"
        return "moderator"

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        role = self._role(messages)
        instruction = messages[-1]["content"] if messages else ""
        # Yield so callers see a real suspension point
        await asyncio.sleep(0)

        if "is speaking right now" in instruction:
            return INTERJECTION_TEXT.get(role, INTERJECTION_TEXT["con"])
        if role == "moderator":
            return MODERATOR_TEXT
        if "one pointed question" in instruction:
            return CANNED_QUESTIONS[role]

        arguments = CANNED_ARGUMENTS[role]
        response = arguments[next(self._counter) % len(arguments)]
        logger.debug(f"Mock provider answered as {role} ({len(response)} chars)")
        return response

    async def generate_response_with_metadata(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> GenerationMetadata:
        metadata = await super().generate_response_with_metadata(model_config, messages, **overrides)
        # Word counts stand in for tokens
        metadata.prompt_tokens = sum(len(m["content"].split()) for m in messages)
        metadata.completion_tokens = len(metadata.content.split())
        metadata.total_tokens = metadata.prompt_tokens + metadata.completion_tokens
        return metadata
