"""Configuration for chat-providers.

Config discovery (first match wins):
  1. ``--config`` flag
  2. ``./chat_providers.yaml``
  3. ``~/.config/chat-providers/config.yaml``
  4. Built-in defaults

Model parameters layer global → provider → alias → prompt, each layer
overriding only the fields it sets.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from chat_providers.llm.errors import ChatProvidersError
from chat_providers.types import (
    PROVIDER_LOCAL,
    PROVIDER_OPENAI,
    PROVIDER_OPENROUTER,
    ModelArchitecture,
    ModelInfo,
    ModelParams,
    ModelPricing,
    ModelReasoningParams,
)

_logger = logging.getLogger(__name__)


class ConfigError(ChatProvidersError):
    """The configuration file exists but cannot be used."""


# ---------------------------------------------------------------------------
# Model parameters
# ---------------------------------------------------------------------------

class ReasoningConfig(BaseModel):
    enabled: bool | None = None
    exclude: bool | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    effort: Literal["high", "medium", "low"] | None = None

    def to_params(self) -> ModelReasoningParams:
        return ModelReasoningParams(
            enabled=self.enabled,
            exclude=self.exclude,
            max_tokens=self.max_tokens,
            effort=self.effort,
        )


class ModelParamsConfig(BaseModel):
    stream: bool | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)
    top_p: float | None = Field(default=None, ge=0, le=1)
    frequency_penalty: float | None = Field(default=None, ge=-2, le=2)
    presence_penalty: float | None = Field(default=None, ge=-2, le=2)
    stop_sequences: list[str] | None = None
    reasoning: ReasoningConfig | None = None

    def to_params(self) -> ModelParams:
        return ModelParams(
            stream=self.stream,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
            stop_sequences=tuple(self.stop_sequences) if self.stop_sequences else None,
            reasoning=self.reasoning.to_params() if self.reasoning else None,
        )


# ---------------------------------------------------------------------------
# Providers, aliases, prompts
# ---------------------------------------------------------------------------

class ModelEntryConfig(BaseModel):
    """A model declared by the operator rather than listed by the provider."""

    model: str
    input_modalities: list[str] = Field(default_factory=lambda: ["text"])
    output_modalities: list[str] = Field(default_factory=lambda: ["text"])
    supported_parameters: list[str] = Field(default_factory=list)
    is_free: bool = False

    def to_model_info(self, provider: str) -> ModelInfo:
        return ModelInfo(
            id=self.model,
            provider=provider,
            architecture=ModelArchitecture(
                input_modalities=tuple(self.input_modalities),
                output_modalities=tuple(self.output_modalities),
            ),
            pricing=ModelPricing.free() if self.is_free else None,
            supported_parameters=tuple(self.supported_parameters),
        )


class ProviderConfig(BaseModel):
    type: str = PROVIDER_OPENAI  # "openrouter" | "openai-compatible" | "local"
    name: str
    base_url: str = ""
    chat_url: str = ""
    api_key: str = ""
    env_api_key: str = ""
    default_model: str = ""
    only_free_models: bool = False
    override_models: bool = False
    app_title: str = ""  # OpenRouter X-Title attribution
    model_params: ModelParamsConfig = Field(default_factory=ModelParamsConfig)
    models: list[ModelEntryConfig] = Field(default_factory=list)

    def get_api_key(self) -> str:
        """The explicit key, else the value of ``env_api_key``."""
        if self.api_key:
            return self.api_key
        if self.env_api_key:
            return os.environ.get(self.env_api_key, "")
        return ""

    def static_models(self) -> dict[str, ModelInfo]:
        return {m.model: m.to_model_info(self.name) for m in self.models}


class AliasConfig(BaseModel):
    alias: str
    model: str  # "provider:model"
    model_params: ModelParamsConfig = Field(default_factory=ModelParamsConfig)


class PromptConfig(BaseModel):
    name: str
    enabled: bool = True
    description: str = ""
    text: str = ""
    aliases: list[str] = Field(default_factory=list)
    model_params: ModelParamsConfig = Field(default_factory=ModelParamsConfig)


class ToolsConfig(BaseModel):
    enabled: bool = True
    telegram: bool = False
    allowed: list[str] = Field(default_factory=list)
    excluded: list[str] = Field(default_factory=list)


class AIConfig(BaseModel):
    """Top-level configuration."""

    default_model: str = ""  # "provider:model"
    model_params: ModelParamsConfig = Field(default_factory=ModelParamsConfig)
    providers: list[ProviderConfig] = Field(default_factory=list)
    aliases: list[AliasConfig] = Field(default_factory=list)
    prompts: list[PromptConfig] = Field(default_factory=list)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    request_timeout: float = Field(default=120, gt=0)

    def get_provider(self, name: str) -> ProviderConfig | None:
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    def get_alias(self, alias: str) -> AliasConfig | None:
        for entry in self.aliases:
            if entry.alias == alias:
                return entry
        return None

    def get_prompt(self, name: str) -> PromptConfig | None:
        """Enabled prompt matching *name* or one of its aliases."""
        for prompt in self.prompts:
            if not prompt.enabled:
                continue
            if prompt.name == name or name in prompt.aliases:
                return prompt
        return None

    def get_full_model_params(
        self, provider: str = "", alias: str = "", prompt: str = "",
    ) -> ModelParams:
        params = self.model_params.to_params()
        if provider:
            provider_cfg = self.get_provider(provider)
            if provider_cfg is not None:
                params = params.merge(provider_cfg.model_params.to_params())
        if alias:
            alias_cfg = self.get_alias(alias)
            if alias_cfg is not None:
                params = params.merge(alias_cfg.model_params.to_params())
        if prompt:
            prompt_cfg = self.get_prompt(prompt)
            if prompt_cfg is not None:
                params = params.merge(prompt_cfg.model_params.to_params())
        return params


SUPPORTED_PROVIDER_TYPES = (PROVIDER_OPENROUTER, PROVIDER_OPENAI, PROVIDER_LOCAL)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./chat_providers.yaml"),
    Path.home() / ".config" / "chat-providers" / "config.yaml",
]


def parse_config(raw: Any) -> AIConfig:
    """Validate an already-decoded mapping."""
    if raw is None:
        return AIConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"config root must be a mapping, got {type(raw).__name__}")
    try:
        return AIConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc


def load_config(path: str | Path | None = None) -> AIConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    AIConfig

    Raises
    ------
    ConfigError
        The file is not valid YAML or fails validation.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            return AIConfig()
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return AIConfig()

    _logger.info("Loading config from %s", config_path)
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {config_path}: {exc}") from exc
    return parse_config(raw)
