"""In-memory per-chat settings.

A stand-in for the front-end's persistent chat store: it remembers the
model spec and parameter overrides chosen for each chat until the process
exits.
"""

from __future__ import annotations

import threading

from chat_providers.config import AIConfig
from chat_providers.types import ModelParams


class InMemoryChatSettings:
    """Chat settings kept in process memory.

    Parameter layers, lowest first: configuration defaults for the
    provider/alias/prompt, the chat's own overrides, then the caller's.
    """

    def __init__(self, config: AIConfig) -> None:
        self.config = config
        self._lock = threading.Lock()
        self._models: dict[int, str] = {}
        self._params: dict[int, ModelParams] = {}

    def set_model_spec(self, chat_id: int, spec: str) -> None:
        with self._lock:
            if spec:
                self._models[chat_id] = spec
            else:
                self._models.pop(chat_id, None)

    def set_model_params(self, chat_id: int, params: ModelParams | None) -> None:
        with self._lock:
            if params is None:
                self._params.pop(chat_id, None)
            else:
                self._params[chat_id] = params

    async def get_current_model_spec(self, chat_id: int) -> str:
        with self._lock:
            return self._models.get(chat_id, "")

    def merge_model_params(
        self,
        chat_id: int,
        provider: str,
        alias: str,
        prompt: str,
        params: ModelParams | None,
    ) -> ModelParams:
        with self._lock:
            chat_params = self._params.get(chat_id)
        merged = self.config.get_full_model_params(provider, alias, prompt)
        return merged.merge(chat_params).merge(params)
