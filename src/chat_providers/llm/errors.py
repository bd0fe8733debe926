"""Error taxonomy for provider failures.

Every provider I/O or decode failure surfaces as :class:`AIError`, wrapping
the original exception.  :attr:`AIError.error_type` classifies it, and
:meth:`AIError.is_retryable` tells callers whether a retry is safe.  No retry
loop lives here.
"""

from __future__ import annotations

import asyncio
import enum
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from chat_providers.types import ModelInfo


class ChatProvidersError(Exception):
    """Base class for all chat-providers errors."""


class ErrorType(str, enum.Enum):
    """Failure categories, derived from HTTP status and message."""

    NETWORK = "network"  # transport failure before any HTTP status
    RATE_LIMIT = "rate_limit"  # 429
    SERVER = "server"  # 5xx
    CONTENT_POLICY = "content_policy"  # 400 mentioning a policy
    CLIENT = "client"  # other 4xx
    UNKNOWN = "unknown"


_RETRYABLE = frozenset({ErrorType.NETWORK, ErrorType.RATE_LIMIT, ErrorType.SERVER})

_NETWORK_CAUSES = (httpx.TransportError, OSError, TimeoutError, asyncio.TimeoutError)


class AIError(ChatProvidersError):
    """An enriched error from an AI provider."""

    def __init__(
        self,
        message: str = "",
        *,
        provider: str = "",
        model: str = "",
        status_code: int = 0,
        code: str = "",
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.code = code
        self.cause = cause
        super().__init__(str(self))
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        msg = self.message
        if not msg and self.cause is not None:
            msg = str(self.cause)
        if self.provider and self.model:
            msg = f"[{self.provider}:{self.model}] {msg}"
        if self.code:
            msg = f"{msg} (code: {self.code})"
        if self.status_code:
            msg = f"{self.status_code} {msg}"
        return msg

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, provider={self.provider!r}, "
            f"model={self.model!r}, status_code={self.status_code}, code={self.code!r})"
        )

    @property
    def error_type(self) -> ErrorType:
        status = self.status_code
        if status == 0 and isinstance(self.cause, _NETWORK_CAUSES):
            return ErrorType.NETWORK
        if status == 429:
            return ErrorType.RATE_LIMIT
        if status >= 500:
            return ErrorType.SERVER
        if status == 400 and "policy" in self.message.lower():
            return ErrorType.CONTENT_POLICY
        if 400 <= status < 500:
            return ErrorType.CLIENT
        return ErrorType.UNKNOWN

    def is_retryable(self) -> bool:
        return self.error_type in _RETRYABLE


class ModelNotFoundError(AIError):
    """The model is unknown to the provider.

    ``placeholder`` holds an id-only :class:`ModelInfo` so callers that only
    need the name can keep going.
    """

    def __init__(self, placeholder: ModelInfo, message: str = "model not found") -> None:
        super().__init__(message, provider=placeholder.provider, model=placeholder.id)
        self.placeholder = placeholder


class NoFreeModelsError(AIError):
    """A free model was requested but the free catalog is empty."""


class InvalidModelFormatError(ChatProvidersError, ValueError):
    """A model spec is not of the form ``provider:model``."""

    def __init__(self, spec: str) -> None:
        super().__init__(f"invalid model format, expected provider:model: {spec}")
        self.spec = spec


class ProviderNotFoundError(ChatProvidersError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"provider not found: {name}")
        self.name = name


# ---------------------------------------------------------------------------
# Helpers for arbitrary exceptions
# ---------------------------------------------------------------------------

def _find_ai_error(exc: BaseException | None) -> AIError | None:
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, AIError):
            return exc
        seen.add(id(exc))
        if exc.__cause__ is not None:
            exc = exc.__cause__
        elif exc.__suppress_context__:
            exc = None
        else:
            exc = exc.__context__
    return None


def get_error_type(exc: BaseException | None) -> ErrorType:
    err = _find_ai_error(exc)
    return err.error_type if err is not None else ErrorType.UNKNOWN


def is_error_type(exc: BaseException | None, error_type: ErrorType) -> bool:
    return get_error_type(exc) == error_type


def is_retryable_error(exc: BaseException | None) -> bool:
    err = _find_ai_error(exc)
    return err.is_retryable() if err is not None else False
