"""Tests for provider registration, model resolution and dispatch."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from chat_providers.config import AIConfig, parse_config
from chat_providers.llm.base import Provider
from chat_providers.llm.errors import (
    AIError,
    InvalidModelFormatError,
    ModelNotFoundError,
    ProviderNotFoundError,
)
from chat_providers.llm.registry import ProviderRegistry, parse_model_spec
from chat_providers.settings import InMemoryChatSettings
from chat_providers.types import (
    AskResult,
    CompletionRequest,
    Message,
    ModelInfo,
    ModelParams,
    ModelPricing,
)

USER = [Message(role="user", text="hi")]


class FakeStream:
    def __init__(self) -> None:
        self.model: ModelInfo | None = None
        self.params: ModelParams | None = None


class FakeProvider(Provider):
    """Provider double with a fixed catalog that records requests."""

    def __init__(
        self,
        name: str,
        models: list[str] | None = None,
        default_model: str = "",
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.models = {
            m: ModelInfo(id=m, provider=name, pricing=ModelPricing.free() if m.endswith(":free") else None)
            for m in models or []
        }
        self.default_model = default_model
        self.error = error
        self.requests: list[CompletionRequest] = []
        self.closed = False

    def create_request(self, stream, messages, tools, model, params, web_search=False):
        return CompletionRequest(
            model=model.id,
            messages=messages,
            stream=stream,
            temperature=params.temperature,
            max_tokens=params.max_tokens,
            web_search=web_search,
            model_info=model,
        )

    async def ask(self, request, headers=None):
        self.requests.append(request)
        return AskResult(content=f"{self.name}:{request.model}")

    async def ask_stream(self, request, headers=None):
        self.requests.append(request)
        return FakeStream()

    async def get_models(self, only_free=False, fresh=False):
        if self.error is not None:
            raise self.error
        if only_free:
            return {k: v for k, v in self.models.items() if v.is_free()}
        return dict(self.models)

    async def get_model_info(self, name):
        if self.error is not None:
            raise self.error
        if name in self.models:
            return self.models[name]
        raise ModelNotFoundError(ModelInfo.placeholder(name, self.name))

    def get_default_model(self):
        return self.default_model

    async def aclose(self):
        self.closed = True


def _config(**overrides: Any) -> AIConfig:
    raw: dict[str, Any] = {
        "default_model": "local:mini",
        "model_params": {"temperature": 0.7, "max_tokens": 100},
        "providers": [
            {"name": "openai", "model_params": {"temperature": 0.2}},
            {"name": "local", "type": "local"},
        ],
        "aliases": [
            {"alias": "fast", "model": "openai:gpt-x", "model_params": {"max_tokens": 50}},
        ],
        "prompts": [
            {"name": "poet", "model_params": {"temperature": 1.5}},
        ],
    }
    raw.update(overrides)
    return parse_config(raw)


def _registry(config: AIConfig | None = None, settings: Any = None) -> tuple[ProviderRegistry, FakeProvider, FakeProvider]:
    registry = ProviderRegistry(config or _config(), settings)
    openai = FakeProvider("openai", ["gpt-x", "shared"], default_model="gpt-x")
    local = FakeProvider("local", ["mini", "shared", "tiny:free"], default_model="mini")
    registry.register_provider("openai", openai)
    registry.register_provider("local", local)
    return registry, openai, local


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegistration:
    def test_lookup_and_order(self):
        registry, openai, _ = _registry()
        assert registry.get_provider("openai") is openai
        assert registry.providers() == ["openai", "local"]

    def test_unknown_provider(self):
        registry, _, _ = _registry()
        with pytest.raises(ProviderNotFoundError):
            registry.get_provider("nope")

    def test_reregister_replaces(self):
        registry, _, _ = _registry()
        replacement = FakeProvider("openai")
        registry.register_provider("openai", replacement)
        assert registry.get_provider("openai") is replacement
        assert registry.providers() == ["openai", "local"]

    async def test_aclose_closes_all(self):
        registry, openai, local = _registry()
        await registry.aclose()
        assert openai.closed and local.closed


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def test_parse_model_spec():
    assert parse_model_spec("openrouter:qwen/qwen3:free") == ("openrouter", "qwen/qwen3:free")
    assert parse_model_spec("local:") == ("local", "")
    with pytest.raises(InvalidModelFormatError):
        parse_model_spec("no-colon")


class TestResolveModel:
    async def test_explicit_spec_wins(self):
        settings = InMemoryChatSettings(_config())
        settings.set_model_spec(42, "openai:shared")
        registry, openai, _ = _registry(settings=settings)
        provider, model = await registry.resolve_model("openai:gpt-x", chat_id=42)
        assert provider is openai
        assert model == "gpt-x"

    async def test_chat_choice_then_default(self):
        settings = InMemoryChatSettings(_config())
        registry, openai, local = _registry(settings=settings)

        assert await registry.resolve_model("", chat_id=42) == (local, "mini")

        settings.set_model_spec(42, "openai:shared")
        assert await registry.resolve_model("", chat_id=42) == (openai, "shared")
        # chat id 0 means "no chat"
        assert await registry.resolve_model("", chat_id=0) == (local, "mini")

    async def test_bad_chat_choice_falls_through(self, caplog: pytest.LogCaptureFixture):
        settings = InMemoryChatSettings(_config())
        settings.set_model_spec(7, "gone:model")
        registry, _, local = _registry(settings=settings)
        with caplog.at_level(logging.DEBUG, logger="chat_providers.llm.registry"):
            assert await registry.resolve_model("", chat_id=7) == (local, "mini")
        assert any("falling back" in r.getMessage() for r in caplog.records)

    async def test_malformed_explicit_spec(self):
        registry, _, _ = _registry()
        with pytest.raises(InvalidModelFormatError):
            await registry.resolve_model("gpt-x")

    async def test_unknown_explicit_provider(self):
        registry, _, _ = _registry()
        with pytest.raises(ProviderNotFoundError):
            await registry.resolve_model("gone:gpt-x")

    async def test_invalid_default(self):
        registry, _, _ = _registry(_config(default_model="mini"))
        with pytest.raises(InvalidModelFormatError):
            await registry.resolve_model()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestAsk:
    async def test_layers_params_and_attaches_them(self):
        registry, openai, _ = _registry()
        model = ModelInfo(id="gpt-x", provider="openai", alias="fast")

        result = await registry.ask(
            USER, model=model, prompt_name="poet", params=ModelParams(max_tokens=10),
        )

        assert result.content == "openai:gpt-x"
        assert result.params == ModelParams(temperature=1.5, max_tokens=10)
        assert result.model is model
        sent = openai.requests[0]
        assert (sent.temperature, sent.max_tokens) == (1.5, 10)

    async def test_provider_and_alias_layers(self):
        registry, _, _ = _registry()
        model = ModelInfo(id="gpt-x", provider="openai", alias="fast")
        result = await registry.ask(USER, model=model)
        assert result.params == ModelParams(temperature=0.2, max_tokens=50)

    async def test_no_model_uses_default_chain(self):
        registry, _, local = _registry()
        result = await registry.ask(USER)
        assert result.content == "local:mini"
        assert result.model == local.models["mini"]
        assert result.params == ModelParams(temperature=0.7, max_tokens=100)

    async def test_model_id_without_provider(self):
        registry, _, local = _registry()
        result = await registry.ask(USER, model=ModelInfo(id="unlisted", alias="nick"))
        assert result.content == "local:unlisted"
        assert result.model == ModelInfo(id="unlisted", provider="local", alias="nick")
        assert local.requests[0].model_info == result.model

    async def test_chat_params_between_config_and_caller(self):
        config = _config()
        settings = InMemoryChatSettings(config)
        settings.set_model_spec(42, "openai:gpt-x")
        settings.set_model_params(42, ModelParams(temperature=0.9, top_p=0.5))
        registry, openai, _ = _registry(config, settings)

        result = await registry.ask(USER, chat_id=42, params=ModelParams(top_p=0.1))

        assert result.content == "openai:gpt-x"
        assert result.params == ModelParams(temperature=0.9, max_tokens=100, top_p=0.1)

    async def test_unknown_provider_on_model(self):
        registry, _, _ = _registry()
        with pytest.raises(ProviderNotFoundError):
            await registry.ask(USER, model=ModelInfo(id="x", provider="gone"))

    async def test_stream_gets_params_and_model(self):
        registry, openai, _ = _registry()
        model = ModelInfo(id="gpt-x", provider="openai")
        stream = await registry.ask_stream(USER, model=model, web_search=True)
        assert stream.model is model
        assert stream.params == ModelParams(temperature=0.2, max_tokens=100)
        assert openai.requests[0].stream
        assert openai.requests[0].web_search


# ---------------------------------------------------------------------------
# Catalog queries
# ---------------------------------------------------------------------------

class TestGetFormattedModel:
    async def test_alias(self):
        registry, openai, _ = _registry()
        info = await registry.get_formatted_model("fast")
        assert info.id == "gpt-x"
        assert info.provider == "openai"
        assert info.alias == "fast"
        assert openai.models["gpt-x"].alias == ""

    async def test_embedded_provider(self):
        registry, _, _ = _registry()
        info = await registry.get_formatted_model("local:shared")
        assert info.provider == "local"

    async def test_explicit_provider(self):
        registry, _, _ = _registry()
        assert (await registry.get_formatted_model("shared", "local")).provider == "local"

    async def test_bare_name_first_provider_wins(self):
        registry, _, _ = _registry()
        assert (await registry.get_formatted_model("shared")).provider == "openai"

    async def test_colon_in_model_id_probes_providers(self):
        registry, _, _ = _registry()
        info = await registry.get_formatted_model("tiny:free")
        assert info.provider == "local"
        assert info.id == "tiny:free"

    async def test_not_found(self):
        registry, _, _ = _registry()
        with pytest.raises(ModelNotFoundError) as excinfo:
            await registry.get_formatted_model("ghost")
        assert excinfo.value.placeholder.id == "ghost"

    async def test_failing_provider_skipped(self):
        registry = ProviderRegistry(_config())
        registry.register_provider("broken", FakeProvider("broken", error=AIError("down", status_code=503)))
        registry.register_provider("local", FakeProvider("local", ["mini"]))
        assert (await registry.get_formatted_model("mini")).provider == "local"


class TestGetAllModels:
    async def test_failures_omitted(self, caplog: pytest.LogCaptureFixture):
        registry = ProviderRegistry(_config())
        registry.register_provider("broken", FakeProvider("broken", error=AIError("down", status_code=503)))
        registry.register_provider("empty", FakeProvider("empty"))
        registry.register_provider("local", FakeProvider("local", ["mini", "tiny:free"]))

        with caplog.at_level(logging.ERROR, logger="chat_providers.llm.registry"):
            models = await registry.get_all_models()

        assert list(models) == ["local"]
        assert {m.id for m in models["local"]} == {"mini", "tiny:free"}
        assert any("broken" in r.getMessage() for r in caplog.records)

    async def test_only_free(self):
        registry, _, _ = _registry()
        models = await registry.get_all_models(only_free=True)
        assert list(models) == ["local"]
        assert [m.id for m in models["local"]] == ["tiny:free"]


class TestInMemoryChatSettings:
    async def test_spec_round_trip(self):
        settings = InMemoryChatSettings(AIConfig())
        assert await settings.get_current_model_spec(1) == ""
        settings.set_model_spec(1, "local:mini")
        assert await settings.get_current_model_spec(1) == "local:mini"
        settings.set_model_spec(1, "")
        assert await settings.get_current_model_spec(1) == ""

    def test_merge_order(self):
        settings = InMemoryChatSettings(_config())
        settings.set_model_params(5, ModelParams(temperature=0.1, max_tokens=5))
        merged = settings.merge_model_params(5, "openai", "", "", ModelParams(max_tokens=7))
        assert merged == ModelParams(temperature=0.1, max_tokens=7)
        settings.set_model_params(5, None)
        assert settings.merge_model_params(5, "openai", "", "", None) == ModelParams(
            temperature=0.2, max_tokens=100,
        )
