"""Model providers package."""

from .providers import ProviderFactory
from .ollama_provider import OllamaProvider
from .open_router_provider import OpenRouterProvider
from .mock_provider import MockProvider
from .base_model_provider import BaseModelProvider, GenerationMetadata
from .exceptions import ProviderError, ProviderRateLimitError

__all__ = [
    "ProviderFactory",
    "OllamaProvider",
    "OpenRouterProvider",
    "MockProvider",
    "BaseModelProvider",
    "GenerationMetadata",
    "ProviderError",
    "ProviderRateLimitError",
]
