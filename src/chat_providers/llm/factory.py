"""Provider construction from configuration, plus model warm-up."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from chat_providers.llm.base import Provider
from chat_providers.llm.local import LocalProvider
from chat_providers.llm.openai_compatible import OpenAICompatibleProvider
from chat_providers.llm.openrouter import OpenRouterProvider
from chat_providers.llm.registry import ChatSettings, ProviderRegistry
from chat_providers.types import PROVIDER_LOCAL, PROVIDER_OPENAI, PROVIDER_OPENROUTER

if TYPE_CHECKING:
    from chat_providers.config import AIConfig, ProviderConfig

_logger = logging.getLogger(__name__)

MODELS_SYNC_TIMEOUT = 5.0  # seconds


def build_provider(
    provider_config: ProviderConfig,
    config: AIConfig,
    http_client: httpx.AsyncClient | None = None,
) -> Provider | None:
    """Instantiate the backend named by ``provider_config.type``.

    Unsupported types are logged and yield ``None``.
    """
    common = dict(
        chat_url=provider_config.chat_url,
        default_model=provider_config.default_model,
        static_models=provider_config.static_models(),
        http_client=http_client,
        timeout=config.request_timeout,
    )
    kind = provider_config.type
    if kind == PROVIDER_OPENROUTER:
        return OpenRouterProvider(
            provider_config.name,
            base_url=provider_config.base_url,
            api_key=provider_config.get_api_key(),
            app_title=provider_config.app_title,
            override_models=provider_config.override_models,
            only_free=provider_config.only_free_models,
            **common,
        )
    if kind == PROVIDER_OPENAI:
        return OpenAICompatibleProvider(
            provider_config.name,
            provider_config.base_url,
            api_key=provider_config.get_api_key(),
            override_models=provider_config.override_models,
            only_free=provider_config.only_free_models,
            **common,
        )
    if kind == PROVIDER_LOCAL:
        return LocalProvider(provider_config.name, provider_config.base_url, **common)

    _logger.warning(
        "Unsupported provider type %r for provider %s, skipping", kind, provider_config.name,
    )
    return None


def build_registry(
    config: AIConfig,
    chat_settings: ChatSettings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ProviderRegistry:
    """Registry holding one provider per supported configured entry."""
    registry = ProviderRegistry(config, chat_settings)
    for provider_config in config.providers:
        provider = build_provider(provider_config, config, http_client)
        if provider is not None:
            registry.register_provider(provider_config.name, provider)
    return registry


async def _sync_one(name: str, provider: Provider, timeout: float) -> int | None:
    try:
        models = await asyncio.wait_for(provider.get_models(fresh=True), timeout)
    except asyncio.TimeoutError:
        _logger.warning("Model sync for %s timed out after %.1fs", name, timeout)
        return None
    except Exception as exc:
        _logger.warning("Model sync for %s failed: %s", name, exc)
        return None
    _logger.info("Synced %d models for %s", len(models), name)
    return len(models)


async def sync_models(
    registry: ProviderRegistry, timeout: float = MODELS_SYNC_TIMEOUT,
) -> dict[str, int]:
    """Warm every provider's catalog concurrently.

    Returns the model count per provider that synced; failures are logged
    and left out, never raised.
    """
    names = registry.providers()
    counts = await asyncio.gather(
        *(_sync_one(name, registry.get_provider(name), timeout) for name in names)
    )
    return {name: count for name, count in zip(names, counts) if count is not None}
