"""Model manager with multi-provider support."""

from __future__ import annotations

import logging
from typing import TypeAlias

from config.settings import ModelConfig, SystemConfig

from .providers.base_model_provider import BaseModelProvider, GenerationMetadata
from .providers.providers import ProviderFactory

MessageDict: TypeAlias = dict[str, str]
MessageList: TypeAlias = list[MessageDict]
ModelCatalog: TypeAlias = dict[str, list[str]]

logger = logging.getLogger(__name__)


class ModelManager:
    """Manages model inference via multiple providers."""

    def __init__(self, system_config: SystemConfig):
        self._system_config = system_config
        self._model_configs: dict[str, ModelConfig] = {}
        self._providers: dict[str, BaseModelProvider] = {}

    def _get_provider(self, provider_name: str) -> BaseModelProvider:
        """Return (and cache) the provider instance identified by name."""
        if provider_name not in self._providers:
            self._providers[provider_name] = ProviderFactory.create_provider(
                provider_name, self._system_config
            )
        return self._providers[provider_name]

    def _resolve(self, model_id: str) -> tuple[ModelConfig, BaseModelProvider]:
        if model_id not in self._model_configs:
            raise ValueError(f"Model {model_id} not registered")
        config = self._model_configs[model_id]
        return config, self._get_provider(config.provider)

    @property
    def registered_models(self) -> list[str]:
        return list(self._model_configs.keys())

    def register_model(self, model_id: str, config: ModelConfig) -> None:
        """Register a model configuration for quick lookup."""
        try:
            provider = self._get_provider(config.provider)
            if not provider.validate_model_config(config):
                msg = f"Invalid model config for provider {config.provider}"
                raise ValueError(msg)
        except ValueError as exc:
            logger.error("Failed to register model %s: %s", model_id, exc)
            raise

        self._model_configs[model_id] = config
        logger.info("Registered model %s: %s (%s)", model_id, config.name, config.provider)

    async def generate_response(
        self, model_id: str, messages: MessageList, **overrides: object
    ) -> str:
        """Generate a response from the specified model."""
        config, provider = self._resolve(model_id)
        response = await provider.generate_response(config, messages, **overrides)
        logger.debug(
            "Generated %s chars from %s (%s)", len(response), model_id, config.provider
        )
        return response

    async def generate_response_with_metadata(
        self, model_id: str, messages: MessageList, **overrides: object
    ) -> GenerationMetadata:
        """Generate a response with token and timing metadata."""
        config, provider = self._resolve(model_id)
        metadata = await provider.generate_response_with_metadata(
            config, messages, **overrides
        )
        logger.debug(
            "Generated %s chars with metadata from %s (%s), generation_id: %s",
            len(metadata.content),
            model_id,
            config.provider,
            metadata.generation_id,
        )
        return metadata

    async def get_available_models(self) -> ModelCatalog:
        """Get list of available models from all providers."""
        all_models: ModelCatalog = {}

        for provider_name in ProviderFactory.get_available_providers():
            try:
                provider = self._get_provider(provider_name)
                models = await provider.get_available_models()
                all_models[provider_name] = models
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to get models from %s: %s", provider_name, exc)
                all_models[provider_name] = []

        return all_models
