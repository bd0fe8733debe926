"""OpenRouter aggregator provider."""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Mapping

import httpx

from chat_providers.llm.backend import DEFAULT_CHAT_PATH, ChatCompletionsBackend
from chat_providers.llm.base import Provider
from chat_providers.llm.catalog import MODELS_CACHE_TTL, ModelCatalog
from chat_providers.llm.errors import ModelNotFoundError
from chat_providers.llm.stream import ChunkStream
from chat_providers.llm.transport import HTTPTransport
from chat_providers.types import (
    RANDOM_FREE_MODEL,
    AskResult,
    CompletionRequest,
    Message,
    ModelInfo,
    ModelParams,
    ProviderPreferences,
)

if TYPE_CHECKING:
    from chat_providers.tools.base import Tool

_logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_APP_TITLE = "chat-providers"

SORT_PRICE = "price"
SORT_THROUGHPUT = "throughput"


class OpenRouterProvider(Provider):
    """OpenRouter backend.

    Adds the ``X-Title`` attribution header, resolves the ``random-free``
    pseudo-model and asks the router to favour throughput for free models
    and price otherwise.  With *only_free* the catalog never holds paid
    models.
    """

    def __init__(
        self,
        name: str,
        base_url: str = "",
        api_key: str = "",
        app_title: str = DEFAULT_APP_TITLE,
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
        self.app_title = app_title or DEFAULT_APP_TITLE
        self._default_model = default_model
        self._transport = HTTPTransport(
            base_url or OPENROUTER_BASE_URL, api_key, client=http_client, timeout=timeout,
        )
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

    @property
    def only_free_models(self) -> bool:
        return self.catalog.only_free

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def get_models(self, only_free: bool = False, fresh: bool = False) -> dict[str, ModelInfo]:
        return await self.catalog.get_models(only_free=only_free, fresh=fresh)

    async def get_random_free_model(self) -> str:
        return await self.catalog.get_random_free_model()

    async def get_model_info(self, name: str) -> ModelInfo:
        if name == RANDOM_FREE_MODEL:
            name = await self.get_random_free_model()
        return await self.catalog.get_model_info(name)

    def get_default_model(self) -> str:
        return self._default_model

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

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

    async def _prepare(
        self, request: CompletionRequest, headers: dict[str, str] | None,
    ) -> tuple[CompletionRequest, dict[str, str]]:
        model_info = request.model_info
        model = request.model
        if model == RANDOM_FREE_MODEL:
            model = await self.get_random_free_model()
            try:
                model_info = await self.catalog.get_model_info(model)
            except ModelNotFoundError as exc:
                model_info = exc.placeholder
            _logger.debug("random-free resolved to %s", model)
        elif not model:
            model = self.get_default_model()

        sort = SORT_THROUGHPUT if model_info is not None and model_info.is_free() else SORT_PRICE
        prepared = replace(
            request,
            model=model,
            model_info=model_info,
            provider=ProviderPreferences(
                sort=sort,
                require_parameters=request.provider.require_parameters,
            ),
        )
        out_headers = dict(headers or {})
        out_headers["X-Title"] = self.app_title
        return prepared, out_headers

    async def ask(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> AskResult:
        prepared, out_headers = await self._prepare(request, headers)
        return await self._backend.ask(prepared, out_headers)

    async def ask_stream(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> ChunkStream:
        prepared, out_headers = await self._prepare(request, headers)
        return await self._backend.ask_stream(prepared, out_headers)

    async def aclose(self) -> None:
        await self._transport.aclose()

    def __repr__(self) -> str:
        return f"OpenRouterProvider(name={self.name!r}, base_url={self.base_url!r})"
