import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING
from openai import AsyncOpenAI

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig


@dataclass
class GenerationMetadata:
    """Response content plus what the provider reported about producing it."""

    content: str
    model: str
    provider: str
    generation_id: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    generation_time_ms: int | None = None


class BaseModelProvider(ABC):
    """Abstract base class for model providers."""

    def __init__(self, system_config: "SystemConfig"):
        self.system_config = system_config
        self._client: AsyncOpenAI | None = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""
        pass

    @abstractmethod
    async def get_available_models(self) -> list[str]:
        """Get list of available models from this provider."""
        pass

    @abstractmethod
    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a response using this provider."""
        pass

    @abstractmethod
    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        """Validate that a model configuration is compatible with this provider."""
        pass

    async def generate_response_with_metadata(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> GenerationMetadata:
        """Generate a response and wrap it with whatever metadata is available."""
        start_time = time.monotonic()
        content = await self.generate_response(model_config, messages, **overrides)
        return GenerationMetadata(
            content=content,
            model=model_config.name,
            provider=self.provider_name,
            generation_time_ms=int((time.monotonic() - start_time) * 1000),
        )
