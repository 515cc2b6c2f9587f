from typing import TYPE_CHECKING
import logging
import time

import httpx
from openai import AsyncOpenAI

from .base_model_provider import BaseModelProvider, GenerationMetadata

if TYPE_CHECKING:
    from openai.types.chat import ChatCompletion
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OllamaProvider(BaseModelProvider):
    """Ollama model provider, talking to Ollama's OpenAI-compatible endpoint."""

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)
        self._client = AsyncOpenAI(
            base_url=f"{system_config.ollama_base_url}/v1",
            api_key="ollama",  # Ollama doesn't require real API key
            timeout=120.0,  # Allows for model loading
            max_retries=0,
        )
        self._ollama_base_url = system_config.ollama_base_url

    @property
    def provider_name(self) -> str:
        return "ollama"

    async def is_running(self) -> bool:
        """Fast health check to see if Ollama server is running."""
        try:
            async with httpx.AsyncClient(timeout=1.0) as client:
                response = await client.get(f"{self._ollama_base_url}/api/tags")
                response.raise_for_status()
                return True
        except Exception as e:
            logger.debug(f"Ollama health check failed: {e}")
            return False

    async def get_available_models(self) -> list[str]:
        """Get list of available models from Ollama."""
        if not await self.is_running():
            logger.error("Failed to get Ollama models: Connection error.")
            return []

        try:
            models = await self._client.models.list()
            return [model.id for model in models.data]
        except Exception as e:
            logger.error(f"Failed to get Ollama models: {e}")
            return []

    def _params(self, model_config: "ModelConfig", messages: list[dict[str, str]], overrides: dict) -> dict:
        return {
            "model": model_config.name,
            "messages": messages,
            "max_tokens": overrides.get("max_tokens", model_config.max_tokens),
            "temperature": overrides.get("temperature", model_config.temperature),
        }

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        metadata = await self.generate_response_with_metadata(model_config, messages, **overrides)
        return metadata.content

    async def generate_response_with_metadata(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> GenerationMetadata:
        start_time = time.monotonic()
        try:
            response: "ChatCompletion" = await self._client.chat.completions.create(
                **self._params(model_config, messages, overrides)
            )
        except Exception as e:
            logger.error(f"Ollama generation failed for {model_config.name}: {e}")
            raise

        content = (response.choices[0].message.content or "").strip()
        usage = response.usage
        logger.debug(f"Generated {len(content)} chars from Ollama model {model_config.name}")
        return GenerationMetadata(
            content=content,
            model=model_config.name,
            provider=self.provider_name,
            generation_id=response.id,
            prompt_tokens=usage.prompt_tokens if usage else None,
            completion_tokens=usage.completion_tokens if usage else None,
            total_tokens=usage.total_tokens if usage else None,
            generation_time_ms=int((time.monotonic() - start_time) * 1000),
        )

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        return model_config.provider == "ollama"
