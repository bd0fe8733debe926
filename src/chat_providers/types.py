"""Shared data types for chat-providers.

Request/response shapes follow the OpenAI chat-completions wire format with
the extensions aggregators such as OpenRouter add (plugins, reasoning,
routing preferences).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chat_providers.llm.errors import AIError
    from chat_providers.tools.base import Tool


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROVIDER_OPENROUTER = "openrouter"
PROVIDER_OPENAI = "openai-compatible"
PROVIDER_LOCAL = "local"

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_TOOL = "tool"

SUPPORTED_ROLES = (ROLE_SYSTEM, ROLE_USER, ROLE_ASSISTANT, ROLE_TOOL)

RANDOM_FREE_MODEL = "random-free"

FREE_BADGE = "🆓"
TOOLS_BADGE = "🛠️"
TEXT_MODALITY = "💬"
IMAGE_RECOGNITION_MODALITY = "👁️"
IMAGE_GENERATION_MODALITY = "🖼️"
FILE_MODALITY = "📄"
AUDIO_MODALITY = "🎵"

_INPUT_BADGES = {
    "text": TEXT_MODALITY,
    "image": IMAGE_RECOGNITION_MODALITY,
    "file": FILE_MODALITY,
    "audio": AUDIO_MODALITY,
}
_OUTPUT_BADGES = {
    "text": TEXT_MODALITY,
    "image": IMAGE_GENERATION_MODALITY,
    "file": FILE_MODALITY,
    "audio": AUDIO_MODALITY,
}


# ---------------------------------------------------------------------------
# Model catalog types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelPricing:
    """Per-component rates as reported by the provider (decimal strings)."""

    prompt: str = ""
    completion: str = ""
    image: str = ""
    web_search: str = ""

    @classmethod
    def free(cls) -> ModelPricing:
        return cls(prompt="0", completion="0", image="0", web_search="0")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelPricing:
        return cls(
            prompt=str(data.get("prompt", "") or ""),
            completion=str(data.get("completion", "") or ""),
            image=str(data.get("image", "") or ""),
            web_search=str(data.get("web_search", "") or ""),
        )

    def is_free(self) -> bool:
        return (
            self.prompt == "0"
            and self.completion == "0"
            and self.image == "0"
            and self.web_search == "0"
        )


@dataclass(frozen=True)
class ModelArchitecture:
    modality: str = ""
    input_modalities: tuple[str, ...] = ()
    output_modalities: tuple[str, ...] = ()
    tokenizer: str = ""
    instruct_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelArchitecture:
        return cls(
            modality=data.get("modality", "") or "",
            input_modalities=tuple(data.get("input_modalities") or ()),
            output_modalities=tuple(data.get("output_modalities") or ()),
            tokenizer=data.get("tokenizer", "") or "",
            instruct_type=data.get("instruct_type"),
        )


@dataclass(frozen=True)
class ModelInfo:
    """A model offered by a provider.

    Instances are immutable and identified by ``(provider, id)``.  Catalog
    refreshes replace them wholesale instead of mutating them.
    """

    id: str
    provider: str = ""
    alias: str = ""
    architecture: ModelArchitecture | None = None
    pricing: ModelPricing | None = None
    supported_parameters: tuple[str, ...] = ()
    created: int | None = None

    @classmethod
    def placeholder(cls, name: str, provider: str = "") -> ModelInfo:
        """Id-only entry used when a model could not be found."""
        return cls(id=name, provider=provider)

    @classmethod
    def from_dict(cls, data: dict[str, Any], provider: str = "") -> ModelInfo:
        """Parse one entry of a provider's ``GET /models`` listing."""
        arch = data.get("architecture")
        pricing = data.get("pricing")
        created = data.get("created")
        return cls(
            id=str(data.get("id", "")),
            provider=provider or data.get("provider", "") or "",
            alias=data.get("alias", "") or "",
            architecture=ModelArchitecture.from_dict(arch) if isinstance(arch, dict) else None,
            pricing=ModelPricing.from_dict(pricing) if isinstance(pricing, dict) else None,
            supported_parameters=tuple(data.get("supported_parameters") or ()),
            created=int(created) if isinstance(created, (int, float)) else None,
        )

    @property
    def full_name(self) -> str:
        return f"{self.provider}:{self.id}"

    @property
    def created_at(self) -> datetime | None:
        if self.created is None:
            return None
        return datetime.fromtimestamp(self.created, tz=timezone.utc)

    def supports_tools(self) -> bool:
        return "tools" in self.supported_parameters

    def supports_input_modality(self, modality: str) -> bool:
        if self.architecture is None:
            return False
        return modality in self.architecture.input_modalities

    def supports_output_modality(self, modality: str) -> bool:
        if self.architecture is None:
            return False
        return modality in self.architecture.output_modalities

    def supports_image_recognition(self) -> bool:
        return self.supports_input_modality("image")

    def supports_image_generation(self) -> bool:
        return self.supports_output_modality("image")

    def supports_files(self) -> bool:
        return self.supports_input_modality("file")

    def supports_audio_recognition(self) -> bool:
        return self.supports_input_modality("audio")

    def supports_text(self) -> bool:
        return self.supports_input_modality("text") and self.supports_output_modality("text")

    def is_multimodal(self) -> bool:
        return (
            self.supports_image_recognition()
            or self.supports_files()
            or self.supports_audio_recognition()
        )

    def is_free(self) -> bool:
        """True iff pricing is known and every component is exactly ``"0"``."""
        return self.pricing is not None and self.pricing.is_free()

    def formatted_modalities(self) -> str:
        """Compact badge string, e.g. ``🆓💬👁️ \\> 💬🛠️``."""
        inputs = outputs = ""
        if self.architecture is not None:
            inputs = "".join(
                _INPUT_BADGES[m] for m in self.architecture.input_modalities if m in _INPUT_BADGES
            )
            outputs = "".join(
                _OUTPUT_BADGES[m] for m in self.architecture.output_modalities if m in _OUTPUT_BADGES
            )
        modalities = "❓"
        if inputs and outputs:
            modalities = f"{inputs} \\> {outputs}"
        free = FREE_BADGE if self.is_free() else ""
        tools = TOOLS_BADGE if self.supports_tools() else ""
        return free + modalities + tools


# ---------------------------------------------------------------------------
# Generation parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelReasoningParams:
    """Reasoning-token controls (OpenRouter style).

    ``max_tokens`` takes priority over ``effort`` when both are set.
    """

    enabled: bool | None = None
    exclude: bool | None = None
    max_tokens: int | None = None
    effort: str | None = None  # "high" | "medium" | "low"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelReasoningParams:
        enabled = data.get("enabled")
        exclude = data.get("exclude")
        max_tokens = data.get("max_tokens")
        effort = data.get("effort")
        return cls(
            enabled=enabled if isinstance(enabled, bool) else None,
            exclude=exclude if isinstance(exclude, bool) else None,
            max_tokens=max_tokens if _is_int(max_tokens) else None,
            effort=effort if isinstance(effort, str) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.enabled is not None:
            out["enabled"] = self.enabled
        if self.exclude is not None:
            out["exclude"] = self.exclude
        if self.max_tokens is not None:
            out["max_tokens"] = self.max_tokens
        elif self.effort is not None:
            out["effort"] = self.effort
        return out


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


@dataclass(frozen=True)
class ModelParams:
    """Optional generation parameters.

    ``None`` means "not set".  :meth:`merge` is a right-biased field-wise
    override, so ``a.merge(b).merge(b) == a.merge(b)`` and
    ``a.merge(b).merge(c) == a.merge(b.merge(c))``.
    """

    stream: bool | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop_sequences: tuple[str, ...] | None = None
    reasoning: ModelReasoningParams | None = None

    def merge(self, override: ModelParams | None) -> ModelParams:
        """Return a copy with every non-None field of *override* applied."""
        if override is None:
            return self
        changes = {
            f.name: getattr(override, f.name)
            for f in fields(override)
            if getattr(override, f.name) is not None
        }
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ModelParams:
        """Build params from a loose mapping, dropping mistyped values."""
        if not data:
            return cls()
        stream = data.get("stream")
        max_tokens = data.get("max_tokens")
        stop = data.get("stop_sequences", data.get("stop"))
        reasoning = data.get("reasoning")
        if isinstance(stop, str):
            stop = [stop]
        return cls(
            stream=stream if isinstance(stream, bool) else None,
            temperature=_as_float(data.get("temperature")),
            max_tokens=max_tokens if _is_int(max_tokens) else None,
            top_p=_as_float(data.get("top_p")),
            frequency_penalty=_as_float(data.get("frequency_penalty")),
            presence_penalty=_as_float(data.get("presence_penalty")),
            stop_sequences=tuple(str(s) for s in stop) if isinstance(stop, (list, tuple)) else None,
            reasoning=ModelReasoningParams.from_dict(reasoning) if isinstance(reasoning, dict) else None,
        )

    def to_request_params(self) -> dict[str, Any]:
        """Wire-format fields, omitting unset ones."""
        out: dict[str, Any] = {}
        for name in ("stream", "temperature", "max_tokens", "top_p",
                     "frequency_penalty", "presence_penalty"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        if self.stop_sequences:
            out["stop"] = list(self.stop_sequences)
        if self.reasoning is not None:
            out["reasoning"] = self.reasoning.to_dict()
        return out


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass
class ContentPart:
    """One typed element of a multimodal message body."""

    type: str  # "text" | "image_url" | "file" | "input_audio"
    text: str = ""
    image_url: str = ""
    filename: str = ""
    file_data: str = ""
    audio_data: str = ""
    audio_format: str = ""
    annotations: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def text_part(cls, text: str) -> ContentPart:
        return cls(type="text", text=text)

    @classmethod
    def image_part(cls, url: str) -> ContentPart:
        return cls(type="image_url", image_url=url)

    @classmethod
    def file_part(cls, filename: str, file_data: str) -> ContentPart:
        return cls(type="file", filename=filename, file_data=file_data)

    @classmethod
    def audio_part(cls, data: str, audio_format: str) -> ContentPart:
        return cls(type="input_audio", audio_data=data, audio_format=audio_format)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentPart:
        image = data.get("image_url") or {}
        file = data.get("file") or {}
        audio = data.get("input_audio") or {}
        return cls(
            type=data.get("type", ""),
            text=data.get("text", "") or "",
            image_url=image.get("url", "") if isinstance(image, dict) else str(image),
            filename=file.get("filename", ""),
            file_data=file.get("file_data", ""),
            audio_data=audio.get("data", ""),
            audio_format=audio.get("format", ""),
            annotations=list(data.get("annotations") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.type == "text":
            out["text"] = self.text
        elif self.type == "image_url":
            out["image_url"] = {"url": self.image_url}
        elif self.type == "file":
            out["file"] = {"filename": self.filename, "file_data": self.file_data}
        elif self.type == "input_audio":
            out["input_audio"] = {"data": self.audio_data, "format": self.audio_format}
        if self.annotations:
            out["annotations"] = self.annotations
        return out


@dataclass
class FunctionCall:
    name: str = ""
    arguments: str = ""

    def parse_arguments(self) -> dict[str, Any]:
        """Decode the JSON-encoded arguments object.

        Raises ``ValueError`` when the arguments are not a JSON object.
        """
        if not self.arguments:
            return {}
        data = json.loads(self.arguments)
        if not isinstance(data, dict):
            raise ValueError(f"tool arguments are not an object: {self.arguments!r}")
        return data


@dataclass
class ToolCall:
    """A function invocation requested by the model."""

    id: str = ""
    type: str = ""
    function: FunctionCall = field(default_factory=FunctionCall)
    index: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        func = data.get("function") or {}
        index = data.get("index", 0)
        return cls(
            id=data.get("id", "") or "",
            type=data.get("type", "") or "",
            function=FunctionCall(
                name=func.get("name", "") or "",
                arguments=func.get("arguments", "") or "",
            ),
            index=index if _is_int(index) else 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }


@dataclass
class Message:
    """A chat message.

    The body is either plain ``text`` or a list of typed ``content`` parts.
    On the wire ``content`` carries the part list when parts exist and the
    plain text otherwise.
    """

    role: str
    text: str = ""
    content: list[ContentPart] = field(default_factory=list)
    name: str = ""
    tool_call_id: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    def has_files(self) -> bool:
        return any(part.type == "file" for part in self.content)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role}
        if self.content:
            out["content"] = [part.to_dict() for part in self.content]
        else:
            out["content"] = self.text
        if self.name:
            out["name"] = self.name
        if self.tool_call_id:
            out["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            out["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        raw = data.get("content")
        text = ""
        parts: list[ContentPart] = []
        if isinstance(raw, str):
            text = raw
        elif isinstance(raw, list):
            parts = [ContentPart.from_dict(p) for p in raw]
        elif raw is not None:
            raise ValueError(f"unexpected content type: {type(raw).__name__}")
        return cls(
            role=data.get("role", ""),
            text=text,
            content=parts,
            name=data.get("name", "") or "",
            tool_call_id=data.get("tool_call_id", "") or "",
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []],
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass
class Plugin:
    id: str
    pdf_engine: str = ""
    max_results: int = 0
    search_prompt: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id}
        if self.pdf_engine:
            out["pdf"] = {"engine": self.pdf_engine}
        if self.max_results:
            out["max_results"] = self.max_results
        if self.search_prompt:
            out["search_prompt"] = self.search_prompt
        return out


@dataclass
class ProviderPreferences:
    """Upstream routing hints for aggregators."""

    sort: str = ""  # "price" | "latency" | "throughput"
    require_parameters: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.sort:
            out["sort"] = self.sort
        if self.require_parameters:
            out["require_parameters"] = True
        return out


@dataclass
class CompletionRequest:
    """Canonical chat-completions request.

    ``web_search`` and ``model_info`` are request-scoped context and never
    reach the wire.  ``tools=None`` omits the field entirely.
    """

    model: str
    messages: list[Message]
    tools: list[Tool] | None = None
    stream: bool = False
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: list[str] | None = None
    reasoning: ModelReasoningParams | None = None
    plugins: list[Plugin] = field(default_factory=list)
    provider: ProviderPreferences = field(default_factory=ProviderPreferences)
    usage_include: bool = True

    web_search: bool = False
    model_info: ModelInfo | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.tools is not None:
            payload["tools"] = [
                t if isinstance(t, dict) else t.to_openai_schema() for t in self.tools
            ]
        if self.stream:
            payload["stream"] = True
        for name in ("temperature", "max_tokens", "top_p",
                     "frequency_penalty", "presence_penalty"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.stop:
            payload["stop"] = list(self.stop)
        if self.reasoning is not None:
            payload["reasoning"] = self.reasoning.to_dict()
        if self.plugins:
            payload["plugins"] = [p.to_dict() for p in self.plugins]
        prefs = self.provider.to_dict()
        if prefs:
            payload["provider"] = prefs
        payload["usage"] = {"include": self.usage_include}
        return payload


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

@dataclass
class ModelUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0
    cached_tokens: int = 0
    cost: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelUsage:
        completion_details = data.get("completion_tokens_details") or {}
        prompt_details = data.get("prompt_tokens_details") or {}
        return cls(
            prompt_tokens=int(data.get("prompt_tokens") or 0),
            completion_tokens=int(data.get("completion_tokens") or 0),
            total_tokens=int(data.get("total_tokens") or 0),
            reasoning_tokens=int(completion_details.get("reasoning_tokens") or 0),
            cached_tokens=int(prompt_details.get("cached_tokens") or 0),
            cost=float(data.get("cost") or 0.0),
        )


@dataclass
class ProviderErrorBody:
    """Error object some providers embed in an otherwise successful body."""

    message: str = ""
    code: str = ""
    type: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderErrorBody:
        code = data.get("code", "")
        return cls(
            message=str(data.get("message", "") or ""),
            code="" if code is None else str(code),
            type=str(data.get("type", "") or ""),
        )


@dataclass
class ResponseMessage:
    content: str = ""
    reasoning: str = ""
    reasoning_content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def reasoning_text(self) -> str:
        """``reasoning``, falling back to ``reasoning_content``."""
        return self.reasoning or self.reasoning_content


@dataclass
class CompletionResponse:
    id: str = ""
    model: str = ""
    choices: list[ResponseMessage] = field(default_factory=list)
    usage: ModelUsage | None = None
    annotations: list[dict[str, Any]] = field(default_factory=list)
    error: ProviderErrorBody | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletionResponse:
        choices: list[ResponseMessage] = []
        for choice in data.get("choices") or []:
            message = choice.get("message") or {}
            choices.append(
                ResponseMessage(
                    content=message.get("content", "") or "",
                    reasoning=message.get("reasoning", "") or "",
                    reasoning_content=message.get("reasoning_content", "") or "",
                    tool_calls=[
                        ToolCall.from_dict(tc) for tc in message.get("tool_calls") or []
                    ],
                )
            )
        usage = data.get("usage")
        error = data.get("error")
        return cls(
            id=data.get("id", "") or "",
            model=data.get("model", "") or "",
            choices=choices,
            usage=ModelUsage.from_dict(usage) if isinstance(usage, dict) else None,
            annotations=list(data.get("annotations") or []),
            error=ProviderErrorBody.from_dict(error) if isinstance(error, dict) else None,
            raw=data,
        )


@dataclass
class AskResult:
    """Outcome of a blocking completion."""

    content: str = ""
    reasoning: str = ""
    response: CompletionResponse | None = None
    model: ModelInfo | None = None
    params: ModelParams | None = None


@dataclass
class Chunk:
    """One increment of a streamed completion.

    ``tool_calls`` is only populated on the event that finishes a tool-call
    sequence; ``error`` is set when the provider reports an in-stream failure.
    """

    content: str = ""
    reasoning: str = ""
    usage: ModelUsage | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    annotations: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str = ""
    error: AIError | None = None
