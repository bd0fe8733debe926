"""Provider registry and model resolution.

Resolution priority for a request:
  1. an explicit ``provider:model`` spec
  2. the model persisted for the chat (when a chat id is given)
  3. the configured default model
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Protocol

from chat_providers.llm.base import Provider
from chat_providers.llm.errors import (
    ChatProvidersError,
    InvalidModelFormatError,
    ModelNotFoundError,
    ProviderNotFoundError,
)
from chat_providers.types import AskResult, Message, ModelInfo, ModelParams

if TYPE_CHECKING:
    from chat_providers.config import AIConfig
    from chat_providers.llm.stream import ChunkStream
    from chat_providers.tools.base import Tool

_logger = logging.getLogger(__name__)


def parse_model_spec(spec: str) -> tuple[str, str]:
    """Split ``provider:model`` at the first colon.

    >>> parse_model_spec("openrouter:qwen/qwen3:free")
    ('openrouter', 'qwen/qwen3:free')
    """
    provider, sep, model = spec.partition(":")
    if not sep:
        raise InvalidModelFormatError(spec)
    return provider, model


class ChatSettings(Protocol):
    """Per-chat state owned by the messaging front-end."""

    async def get_current_model_spec(self, chat_id: int) -> str:
        ...

    def merge_model_params(
        self,
        chat_id: int,
        provider: str,
        alias: str,
        prompt: str,
        params: ModelParams | None,
    ) -> ModelParams:
        ...


class ProviderRegistry:
    """Named providers plus the resolution and dispatch logic above them.

    Parameters
    ----------
    config:
        Supplies the default model spec, aliases and parameter layers.
    chat_settings:
        Optional per-chat collaborator; without it chat ids are ignored
        and parameters come from *config* alone.
    """

    def __init__(self, config: AIConfig, chat_settings: ChatSettings | None = None) -> None:
        self.config = config
        self._chat_settings = chat_settings
        self._providers: dict[str, Provider] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def set_chat_settings(self, chat_settings: ChatSettings | None) -> None:
        self._chat_settings = chat_settings

    def register_provider(self, name: str, provider: Provider) -> None:
        with self._lock:
            self._providers[name] = provider
        _logger.info("Registered provider %s (%s)", name, type(provider).__name__)

    def get_provider(self, name: str) -> Provider:
        with self._lock:
            provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotFoundError(name)
        return provider

    def providers(self) -> list[str]:
        """Provider names in registration order."""
        with self._lock:
            return list(self._providers)

    def _snapshot(self) -> list[tuple[str, Provider]]:
        with self._lock:
            return list(self._providers.items())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_model(self, model_spec: str = "", chat_id: int = 0) -> tuple[Provider, str]:
        """Return ``(provider, model_name)`` for a request."""
        if model_spec:
            provider_name, model_name = parse_model_spec(model_spec)
            return self.get_provider(provider_name), model_name

        if chat_id and self._chat_settings is not None:
            try:
                chat_spec = await self._chat_settings.get_current_model_spec(chat_id)
                if chat_spec:
                    provider_name, model_name = parse_model_spec(chat_spec)
                    return self.get_provider(provider_name), model_name
            except Exception as exc:
                # a bad per-chat choice never blocks the request
                _logger.debug("Chat %s model not usable, falling back: %s", chat_id, exc)

        provider_name, model_name = parse_model_spec(self.config.default_model)
        return self.get_provider(provider_name), model_name

    async def _resolve_target(
        self, model: ModelInfo | None, chat_id: int,
    ) -> tuple[Provider, ModelInfo]:
        if model is not None and model.provider:
            provider, _ = await self.resolve_model(model.full_name, chat_id)
            return provider, model

        provider, model_name = await self.resolve_model("", chat_id)
        if model is not None and model.id:
            model_name = model.id
        if not model_name:
            model_name = provider.get_default_model()
        try:
            info = await provider.get_model_info(model_name)
        except ModelNotFoundError as exc:
            _logger.debug("Model %s unknown to %s, using placeholder", model_name, provider.name)
            info = exc.placeholder
        if model is not None and model.alias:
            info = replace(info, alias=model.alias)
        return provider, info

    def _merge_params(
        self,
        chat_id: int,
        model: ModelInfo,
        prompt_name: str,
        params: ModelParams | None,
    ) -> ModelParams:
        if self._chat_settings is not None:
            return self._chat_settings.merge_model_params(
                chat_id, model.provider, model.alias, prompt_name, params,
            )
        merged = self.config.get_full_model_params(model.provider, model.alias, prompt_name)
        return merged.merge(params)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def ask(
        self,
        messages: list[Message],
        tools: list[Tool] | None = None,
        model: ModelInfo | None = None,
        *,
        prompt_name: str = "",
        chat_id: int = 0,
        web_search: bool = False,
        params: ModelParams | None = None,
        headers: dict[str, str] | None = None,
    ) -> AskResult:
        """Resolve the target, merge parameters and run a blocking completion."""
        provider, info = await self._resolve_target(model, chat_id)
        merged = self._merge_params(chat_id, info, prompt_name, params)
        request = provider.create_request(False, messages, tools, info, merged, web_search)
        result = await provider.ask(request, headers)
        result.params = merged
        if result.model is None:
            result.model = info
        return result

    async def ask_stream(
        self,
        messages: list[Message],
        tools: list[Tool] | None = None,
        model: ModelInfo | None = None,
        *,
        prompt_name: str = "",
        chat_id: int = 0,
        web_search: bool = False,
        params: ModelParams | None = None,
        headers: dict[str, str] | None = None,
    ) -> ChunkStream:
        """Like :meth:`ask` but returns the chunk stream."""
        provider, info = await self._resolve_target(model, chat_id)
        merged = self._merge_params(chat_id, info, prompt_name, params)
        request = provider.create_request(True, messages, tools, info, merged, web_search)
        stream = await provider.ask_stream(request, headers)
        stream.params = merged
        if stream.model is None:
            stream.model = info
        return stream

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    async def get_formatted_model(self, model_name: str, provider_name: str = "") -> ModelInfo:
        """Validate a user-supplied model reference and return its entry.

        *model_name* may be an alias, a full ``provider:model`` spec or a
        bare model id, which is looked up in every provider in
        registration order.
        """
        _logger.debug("Get model info: model=%s provider=%s", model_name, provider_name)
        alias_name = ""
        alias = self.config.get_alias(model_name)
        if alias is not None:
            alias_name = model_name
            model_name = alias.model

        lookup_name = model_name
        if not provider_name:
            embedded, sep, rest = model_name.partition(":")
            if sep and embedded in self.providers():
                provider_name, lookup_name = embedded, rest

        info: ModelInfo | None = None
        if provider_name and provider_name in self.providers():
            info = await self.get_provider(provider_name).get_model_info(lookup_name)
        else:
            for name, provider in self._snapshot():
                try:
                    info = await provider.get_model_info(model_name)
                except ModelNotFoundError:
                    continue
                except ChatProvidersError as exc:
                    _logger.debug("Provider %s lookup of %s failed: %s", name, model_name, exc)
                    continue
                break

        if info is None:
            raise ModelNotFoundError(ModelInfo.placeholder(model_name, provider_name))
        if alias_name:
            info = replace(info, alias=alias_name)
        return info

    async def get_all_models(
        self, only_free: bool = False, fresh: bool = False,
    ) -> dict[str, list[ModelInfo]]:
        """Catalog of every provider; failing providers are logged and omitted."""
        entries = self._snapshot()
        results = await asyncio.gather(
            *(provider.get_models(only_free=only_free, fresh=fresh) for _, provider in entries),
            return_exceptions=True,
        )
        models: dict[str, list[ModelInfo]] = {}
        for (name, _), result in zip(entries, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                _logger.error("Get models from %s failed: %s", name, result)
                continue
            if result:
                models[name] = list(result.values())
        return models

    async def aclose(self) -> None:
        for _, provider in self._snapshot():
            await provider.aclose()
