"""Provider for any endpoint speaking the OpenAI chat-completions protocol."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Callable, Mapping

import httpx

from chat_providers.llm.backend import DEFAULT_CHAT_PATH, ChatCompletionsBackend
from chat_providers.llm.base import Provider
from chat_providers.llm.catalog import MODELS_CACHE_TTL, ModelCatalog
from chat_providers.llm.stream import ChunkStream
from chat_providers.llm.transport import HTTPTransport
from chat_providers.types import (
    AskResult,
    CompletionRequest,
    Message,
    ModelInfo,
    ModelParams,
)

if TYPE_CHECKING:
    from chat_providers.tools.base import Tool


class OpenAICompatibleProvider(Provider):
    """Plain OpenAI-style backend.

    The live catalog comes from ``GET models`` unless *override_models* is
    set, in which case only the configured *static_models* are offered.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str = "",
        chat_url: str = "",
        default_model: str = "",
        static_models: Mapping[str, ModelInfo] | None = None,
        override_models: bool = False,
        only_free: bool = False,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120,
        cache_ttl: float = MODELS_CACHE_TTL,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.name = name
        self._default_model = default_model
        self._transport = HTTPTransport(base_url, api_key, client=http_client, timeout=timeout)
        self._backend = ChatCompletionsBackend(name, self._transport, chat_url or DEFAULT_CHAT_PATH)
        catalog_kwargs = {"clock": clock} if clock is not None else {}
        self.catalog = ModelCatalog(
            name,
            fetch=None if override_models else self._backend.fetch_models,
            static_models=static_models,
            only_free=only_free,
            ttl=cache_ttl,
            rng=rng,
            **catalog_kwargs,
        )

    @property
    def base_url(self) -> str:
        return self._transport.base_url

    def create_request(
        self,
        stream: bool,
        messages: list[Message],
        tools: list[Tool] | None,
        model: ModelInfo,
        params: ModelParams,
        web_search: bool = False,
    ) -> CompletionRequest:
        return self._backend.create_request(stream, messages, tools, model, params, web_search)

    async def ask(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> AskResult:
        return await self._backend.ask(request, headers)

    async def ask_stream(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> ChunkStream:
        return await self._backend.ask_stream(request, headers)

    async def get_models(self, only_free: bool = False, fresh: bool = False) -> dict[str, ModelInfo]:
        return await self.catalog.get_models(only_free=only_free, fresh=fresh)

    async def get_model_info(self, name: str) -> ModelInfo:
        return await self.catalog.get_model_info(name)

    def get_default_model(self) -> str:
        return self._default_model

    async def aclose(self) -> None:
        await self._transport.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, base_url={self.base_url!r})"
