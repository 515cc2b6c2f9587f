import os
import asyncio
import time
from typing import TYPE_CHECKING, ClassVar
import logging
from openai import AsyncOpenAI
import httpx

from .base_model_provider import BaseModelProvider, GenerationMetadata
from .exceptions import ProviderError, ProviderRateLimitError

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenRouterProvider(BaseModelProvider):
    """OpenRouter model provider implementation."""

    # Class-level rate limiting to prevent 429 errors
    _last_request_time: ClassVar[float | None] = None
    _request_lock: ClassVar[asyncio.Lock] = asyncio.Lock()
    _min_request_interval: ClassVar[float] = 1.0

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)
        self._api_key = system_config.openrouter.api_key or os.getenv("OPENROUTER_API_KEY")

        if not self._api_key:
            logger.warning(
                "No OpenRouter API key found. Set OPENROUTER_API_KEY or configure in system settings."
            )
            self._client = None
        else:
            self._client = AsyncOpenAI(
                base_url=system_config.openrouter.base_url,
                api_key=self._api_key,
                timeout=system_config.openrouter.timeout,
                max_retries=system_config.openrouter.max_retries,
                default_headers=self._attribution_headers(),
            )

    @property
    def provider_name(self) -> str:
        return "openrouter"

    def _attribution_headers(self) -> dict[str, str]:
        headers = {}
        if self.system_config.openrouter.site_url:
            headers["HTTP-Referer"] = self.system_config.openrouter.site_url
        if self.system_config.openrouter.app_name:
            headers["X-Title"] = self.system_config.openrouter.app_name
        return headers

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            **self._attribution_headers(),
        }

    def _payload(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], overrides: dict
    ) -> dict:
        return {
            "model": model_config.name,
            "messages": messages,
            "max_tokens": overrides.get("max_tokens", model_config.max_tokens),
            "temperature": overrides.get("temperature", model_config.temperature),
            "reasoning": {"exclude": True},
        }

    def _require_client(self) -> None:
        if not self._client:
            raise ProviderError(self.provider_name, "client not initialized - check API key")

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise ProviderRateLimitError(
                "openrouter", float(retry_after) if retry_after else None
            )
        response.raise_for_status()

    async def _rate_limit_request(self) -> None:
        """Ensure minimum time between requests to avoid 429 errors."""
        async with self._request_lock:
            current_time = time.time()

            if self._last_request_time is not None:
                time_since_last = current_time - self._last_request_time
                if time_since_last < self._min_request_interval:
                    sleep_time = self._min_request_interval - time_since_last
                    logger.debug(
                        f"Rate limiting: waiting {sleep_time:.2f}s before next OpenRouter request"
                    )
                    await asyncio.sleep(sleep_time)

            OpenRouterProvider._last_request_time = time.time()

    async def get_available_models(self) -> list[str]:
        if not self._client:
            logger.warning("OpenRouter client not initialized - no API key")
            return []
        try:
            models = await self._client.models.list()
            return [model.id for model in models.data]
        except Exception as e:
            logger.error(f"Failed to get OpenRouter models: {e}")
            return []

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        metadata = await self.generate_response_with_metadata(model_config, messages, **overrides)
        return metadata.content

    async def generate_response_with_metadata(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> GenerationMetadata:
        """Generate a response through a direct HTTP call so the reasoning parameter is honoured."""
        self._require_client()
        await self._rate_limit_request()
        start_time = time.time()

        try:
            async with httpx.AsyncClient() as client:
                http_response = await client.post(
                    f"{self.system_config.openrouter.base_url}/chat/completions",
                    json=self._payload(model_config, messages, overrides),
                    headers=self._headers(),
                    timeout=self.system_config.openrouter.timeout,
                )
                self._raise_for_status(http_response)
                response_data = http_response.json()
        except Exception as e:
            logger.error(f"OpenRouter generation failed for {model_config.name}: {e}")
            raise

        content = response_data["choices"][0]["message"]["content"] or ""
        if not content.strip():
            logger.warning(
                f"OpenRouter model {model_config.name} returned empty content. "
                f"Response data: {response_data}"
            )

        usage = response_data.get("usage") or {}
        return GenerationMetadata(
            content=content.strip(),
            model=model_config.name,
            provider=self.provider_name,
            generation_id=response_data.get("id"),
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            total_tokens=usage.get("total_tokens"),
            generation_time_ms=int((time.time() - start_time) * 1000),
        )

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        return model_config.provider == "openrouter"
