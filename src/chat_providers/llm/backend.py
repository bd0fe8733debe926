"""Chat-completions plumbing shared by every provider.

Providers hold a :class:`ChatCompletionsBackend` and delegate request
building, the HTTP round trip, stream opening and model listing to it.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from chat_providers.llm.errors import AIError
from chat_providers.llm.stream import ChunkStream, StreamDecoder
from chat_providers.llm.transport import HTTPTransport
from chat_providers.types import (
    AskResult,
    CompletionRequest,
    CompletionResponse,
    Message,
    ModelInfo,
    ModelParams,
    Plugin,
)

if TYPE_CHECKING:
    from chat_providers.tools.base import Tool

_logger = logging.getLogger(__name__)

DEFAULT_CHAT_PATH = "chat/completions"
MODELS_PATH = "models"

WEB_PLUGIN_MAX_RESULTS = 2


def build_plugins(messages: list[Message], model: ModelInfo, web_search: bool) -> list[Plugin]:
    """Plugins implied by the request: web search and file parsing."""
    plugins: list[Plugin] = []
    if web_search:
        plugins.append(Plugin(id="web", max_results=WEB_PLUGIN_MAX_RESULTS))
    if any(m.has_files() for m in messages):
        engine = "native" if model.supports_files() else "pdf-text"
        plugins.append(Plugin(id="file-parser", pdf_engine=engine))
    return plugins


def _error_from_body(body: bytes) -> tuple[str, str]:
    """Pull ``(message, code)`` out of an ``{"error": {...}}`` body."""
    if not body:
        return "", ""
    try:
        data = json.loads(body)
    except ValueError:
        return "", ""
    if not isinstance(data, dict) or not isinstance(data.get("error"), dict):
        return "", ""
    error = data["error"]
    code = error.get("code", "")
    return str(error.get("message", "") or ""), "" if code is None else str(code)


class ChatCompletionsBackend:
    """OpenAI-style ``/chat/completions`` client for one provider.

    Parameters
    ----------
    name:
        Provider name stamped on every error and model entry.
    transport:
        HTTP transport bound to the provider base URL and key.
    chat_path:
        Completion endpoint, relative to the base URL.
    """

    def __init__(
        self,
        name: str,
        transport: HTTPTransport,
        chat_path: str = DEFAULT_CHAT_PATH,
    ) -> None:
        self.name = name
        self.transport = transport
        self.chat_path = (chat_path or DEFAULT_CHAT_PATH).lstrip("/")

    # ------------------------------------------------------------------
    # Request building
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
        return CompletionRequest(
            model=model.id,
            messages=messages,
            tools=list(tools) if tools else None,
            stream=stream,
            temperature=params.temperature,
            max_tokens=params.max_tokens,
            top_p=params.top_p,
            frequency_penalty=params.frequency_penalty,
            presence_penalty=params.presence_penalty,
            stop=list(params.stop_sequences) if params.stop_sequences else None,
            reasoning=params.reasoning,
            plugins=build_plugins(messages, model, web_search),
            usage_include=True,
            web_search=web_search,
            model_info=model,
        )

    # ------------------------------------------------------------------
    # HTTP round trips
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        model: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        """Send a request; raise :class:`AIError` on transport or status failure.

        On success with ``stream=True`` the caller owns the open response.
        """
        try:
            response = await self.transport.request(
                method, path, json_body=body, headers=headers, stream=stream,
            )
        except httpx.HTTPError as exc:
            raise AIError(
                "network request failed", provider=self.name, model=model, cause=exc,
            ) from exc

        if response.is_success:
            return response

        try:
            raw = await response.aread()
        except httpx.HTTPError as exc:
            raise AIError(
                "failed to read response body", provider=self.name, model=model,
                status_code=response.status_code, cause=exc,
            ) from exc
        finally:
            await response.aclose()

        message, code = _error_from_body(raw)
        raise AIError(
            message or f"HTTP request failed with status code: {response.status_code}",
            provider=self.name,
            model=model,
            status_code=response.status_code,
            code=code,
        )

    async def ask(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> AskResult:
        response = await self._send(
            "POST", self.chat_path, request.model, request.to_payload(), headers,
        )
        try:
            data = response.json()
        except ValueError as exc:
            raise AIError(
                "failed to unmarshal response", provider=self.name, model=request.model, cause=exc,
            ) from exc
        if not isinstance(data, dict):
            raise AIError(
                "failed to unmarshal response", provider=self.name, model=request.model,
            )

        try:
            result = CompletionResponse.from_dict(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise AIError(
                "failed to unmarshal response", provider=self.name, model=request.model, cause=exc,
            ) from exc
        # some providers report failures inside a 2xx body
        if result.error is not None:
            raise AIError(
                result.error.message,
                provider=self.name,
                model=request.model,
                code=result.error.code,
            )
        if not result.choices:
            raise AIError("no choices in response", provider=self.name, model=request.model)

        message = result.choices[0]
        return AskResult(
            content=message.content,
            reasoning=message.reasoning_text,
            response=result,
            model=request.model_info,
        )

    async def ask_stream(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> ChunkStream:
        req_headers = dict(headers or {})
        req_headers["Accept"] = "text/event-stream"
        response = await self._send(
            "POST", self.chat_path, request.model, request.to_payload(), req_headers,
            stream=True,
        )
        return ChunkStream(
            response,
            StreamDecoder(self.name, request.model),
            model=request.model_info,
        )

    async def fetch_models(self) -> dict[str, ModelInfo]:
        """List the provider's live catalog via ``GET models``."""
        response = await self._send("GET", MODELS_PATH, "")
        try:
            data = response.json()
        except ValueError as exc:
            raise AIError(
                "decode models error", provider=self.name, cause=exc,
            ) from exc

        entries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise AIError("decode models error: missing data list", provider=self.name)

        models: dict[str, ModelInfo] = {}
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("id"):
                continue
            try:
                model = ModelInfo.from_dict(entry, provider=self.name)
            except (TypeError, ValueError, AttributeError) as exc:
                raise AIError(
                    f"decode models error: bad entry {entry.get('id')!r}",
                    provider=self.name,
                    cause=exc,
                ) from exc
            models[model.id] = model
        _logger.debug("Fetched %d models from %s", len(models), self.name)
        return models
