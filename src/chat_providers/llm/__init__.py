"""Provider clients, streaming and model resolution for chat-providers."""

from chat_providers.llm.base import Provider
from chat_providers.llm.catalog import ModelCatalog
from chat_providers.llm.errors import (
    AIError,
    ChatProvidersError,
    ErrorType,
    InvalidModelFormatError,
    ModelNotFoundError,
    NoFreeModelsError,
    ProviderNotFoundError,
    get_error_type,
    is_error_type,
    is_retryable_error,
)
from chat_providers.llm.factory import build_provider, build_registry, sync_models
from chat_providers.llm.local import LocalProvider
from chat_providers.llm.openai_compatible import OpenAICompatibleProvider
from chat_providers.llm.openrouter import OpenRouterProvider
from chat_providers.llm.registry import ChatSettings, ProviderRegistry, parse_model_spec
from chat_providers.llm.stream import ChunkStream

__all__ = [
    "AIError",
    "ChatProvidersError",
    "ChatSettings",
    "ChunkStream",
    "ErrorType",
    "InvalidModelFormatError",
    "LocalProvider",
    "ModelCatalog",
    "ModelNotFoundError",
    "NoFreeModelsError",
    "OpenAICompatibleProvider",
    "OpenRouterProvider",
    "Provider",
    "ProviderNotFoundError",
    "ProviderRegistry",
    "build_provider",
    "build_registry",
    "get_error_type",
    "is_error_type",
    "is_retryable_error",
    "parse_model_spec",
    "sync_models",
]
