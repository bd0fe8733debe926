"""Provider capability interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from chat_providers.types import (
    AskResult,
    CompletionRequest,
    Message,
    ModelInfo,
    ModelParams,
)

if TYPE_CHECKING:
    from chat_providers.llm.stream import ChunkStream
    from chat_providers.tools.base import Tool


class Provider(ABC):
    """A chat-completion backend.

    Implementations must be safe for concurrent use by independent tasks.
    """

    name: str

    @abstractmethod
    def create_request(
        self,
        stream: bool,
        messages: list[Message],
        tools: list[Tool] | None,
        model: ModelInfo,
        params: ModelParams,
        web_search: bool = False,
    ) -> CompletionRequest:
        """Build the canonical request for *model*."""

    @abstractmethod
    async def ask(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> AskResult:
        """Perform a blocking completion."""

    @abstractmethod
    async def ask_stream(
        self, request: CompletionRequest, headers: dict[str, str] | None = None,
    ) -> ChunkStream:
        """Open a streamed completion.

        Connection and status failures raise before the stream is returned.
        """

    @abstractmethod
    async def get_models(self, only_free: bool = False, fresh: bool = False) -> dict[str, ModelInfo]:
        ...

    @abstractmethod
    async def get_model_info(self, name: str) -> ModelInfo:
        """Return the catalog entry, raising ``ModelNotFoundError`` if unknown."""

    @abstractmethod
    def get_default_model(self) -> str:
        ...

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
