"""Self-hosted OpenAI-style server (llama.cpp, LM Studio, vLLM and the like)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

import httpx

from chat_providers.llm.backend import DEFAULT_CHAT_PATH, ChatCompletionsBackend
from chat_providers.llm.base import Provider
from chat_providers.llm.catalog import ModelCatalog
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


class LocalProvider(Provider):
    """Local backend: no API key and no listing endpoint.

    The catalog is exactly the configured *static_models*.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        chat_url: str = "",
        default_model: str = "",
        static_models: Mapping[str, ModelInfo] | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120,
    ) -> None:
        self.name = name
        self._default_model = default_model
        self._transport = HTTPTransport(base_url, client=http_client, timeout=timeout)
        self._backend = ChatCompletionsBackend(name, self._transport, chat_url or DEFAULT_CHAT_PATH)
        self.catalog = ModelCatalog(name, fetch=None, static_models=static_models)

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
