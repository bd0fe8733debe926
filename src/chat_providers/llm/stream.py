"""Server-sent-event decoding for streamed chat completions.

A provider streams ``data: {json}`` lines terminated by ``data: [DONE]``.
:class:`StreamDecoder` turns each payload into a :class:`Chunk`, merging
tool-call fragments across events with :class:`ToolCallAccumulator`.
:class:`ChunkStream` runs the decoding in a producer task and hands chunks to
a single consumer through an unbounded queue.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import httpx

from chat_providers.llm.errors import AIError
from chat_providers.types import Chunk, FunctionCall, ModelInfo, ModelParams, ModelUsage, ToolCall

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"

FINISH_TOOL_CALLS = "tool_calls"
FINISH_ERROR = "error"


# ---------------------------------------------------------------------------
# ToolCallAccumulator
# ---------------------------------------------------------------------------

class ToolCallAccumulator:
    """Reassemble streamed tool calls from per-slot fragments.

    Each fragment carries a slot ``index``.  The first fragment for a slot
    seeds it; later ones overwrite ``id``/``type``/``function.name`` only with
    non-empty values and append ``function.arguments`` in arrival order.
    """

    def __init__(self) -> None:
        self._calls: dict[int, ToolCall] = {}

    def feed(self, fragments: list[dict[str, Any]] | None) -> None:
        """Merge the ``delta.tool_calls`` list of one event."""
        if not fragments:
            return
        for frag in fragments:
            if not isinstance(frag, dict):
                continue
            idx = frag.get("index", 0)
            if not isinstance(idx, int):
                idx = 0
            func = frag.get("function") or {}
            call_id = frag.get("id") or ""
            call_type = frag.get("type") or ""
            name = func.get("name") or ""
            args = func.get("arguments") or ""

            current = self._calls.get(idx)
            if current is None:
                self._calls[idx] = ToolCall(
                    id=call_id,
                    type=call_type,
                    function=FunctionCall(name=name, arguments=args),
                    index=idx,
                )
                continue
            if call_id:
                current.id = call_id
            if call_type:
                current.type = call_type
            if name:
                current.function.name = name
            if args:
                current.function.arguments += args

    def has_calls(self) -> bool:
        return bool(self._calls)

    def finalize(self) -> list[ToolCall]:
        """Return the assembled calls (by slot) and start over."""
        result = [self._calls[idx] for idx in sorted(self._calls)]
        self._calls = {}
        return result


# ---------------------------------------------------------------------------
# StreamDecoder
# ---------------------------------------------------------------------------

class StreamDecoder:
    """Stateful per-stream decoder: one payload in, at most one chunk out."""

    def __init__(self, provider: str, model: str) -> None:
        self.provider = provider
        self.model = model
        self._tool_calls = ToolCallAccumulator()

    def decode(self, payload: str) -> Chunk | None:
        """Decode one event payload.

        Returns ``None`` for payloads that carry nothing (malformed JSON is
        logged and skipped).
        """
        try:
            event = json.loads(payload)
        except json.JSONDecodeError as exc:
            _logger.error(
                "stream decode error: %s (provider=%s model=%s data=%r)",
                exc, self.provider, self.model, payload[:500],
            )
            return None
        if not isinstance(event, dict):
            _logger.error("stream event is not an object: %r", payload[:500])
            return None
        try:
            return self._decode_event(event)
        except (TypeError, ValueError, AttributeError) as exc:
            # well-formed JSON with the wrong field types
            _logger.error(
                "stream decode error: %s (provider=%s model=%s data=%r)",
                exc, self.provider, self.model, payload[:500],
            )
            return None

    def _decode_event(self, event: dict[str, Any]) -> Chunk | None:
        error = event.get("error")
        if isinstance(error, dict):
            code = error.get("code", "")
            return Chunk(
                finish_reason=FINISH_ERROR,
                error=AIError(
                    str(error.get("message", "") or "stream generation failed"),
                    provider=self.provider,
                    model=self.model,
                    code="" if code is None else str(code),
                ),
            )

        choices = event.get("choices") or []
        usage_raw = event.get("usage")
        usage = ModelUsage.from_dict(usage_raw) if isinstance(usage_raw, dict) else None
        if not choices:
            if usage is None:
                return None
            return Chunk(usage=usage)

        choice = choices[0] if isinstance(choices[0], dict) else {}
        delta = choice.get("delta") or {}
        self._tool_calls.feed(delta.get("tool_calls"))

        chunk = Chunk(
            content=delta.get("content") or "",
            reasoning=delta.get("reasoning") or delta.get("reasoning_content") or "",
            usage=usage,
            annotations=list(delta.get("annotations") or []),
            finish_reason=choice.get("finish_reason") or "",
        )
        if chunk.finish_reason == FINISH_TOOL_CALLS:
            chunk.tool_calls = self._tool_calls.finalize()
        elif chunk.finish_reason == FINISH_ERROR:
            chunk.error = AIError(
                f"stream generation failed: {chunk.finish_reason}",
                provider=self.provider,
                model=self.model,
            )
        return chunk


def extract_payload(line: str) -> str | None:
    """Return the JSON payload of a ``data:`` line, else ``None``."""
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


# ---------------------------------------------------------------------------
# ChunkStream
# ---------------------------------------------------------------------------

_END = object()


class ChunkStream:
    """Async iterator over the chunks of one streamed response.

    Decoding starts immediately in a background task.  Chunks arrive in the
    order their events were parsed.  Use ``async with`` or call
    :meth:`aclose` when abandoning the stream early; that cancels the
    producer and releases the connection.
    """

    def __init__(
        self,
        response: httpx.Response,
        decoder: StreamDecoder,
        model: ModelInfo | None = None,
        params: ModelParams | None = None,
    ) -> None:
        self.model = model
        self.params = params
        self._response = response
        self._decoder = decoder
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._finished = False
        self._task = asyncio.get_running_loop().create_task(self._produce())

    async def _produce(self) -> None:
        try:
            async for line in self._response.aiter_lines():
                _logger.debug(
                    "Raw SSE event (provider=%s model=%s): %s",
                    self._decoder.provider, self._decoder.model, line,
                )
                payload = extract_payload(line)
                if payload is None:
                    continue
                if payload == DONE_MARKER:
                    break
                chunk = self._decoder.decode(payload)
                if chunk is not None:
                    self._queue.put_nowait(chunk)
        except httpx.HTTPError as exc:
            _logger.warning(
                "stream read error (provider=%s model=%s): %s",
                self._decoder.provider, self._decoder.model, exc,
            )
        finally:
            await self._response.aclose()
            self._queue.put_nowait(_END)

    @property
    def done(self) -> bool:
        """True once the producer has exited."""
        return self._task.done()

    def __aiter__(self) -> ChunkStream:
        return self

    async def __anext__(self) -> Chunk:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        """Stop the producer and close the underlying response."""
        self._finished = True
        if not self._task.done():
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        # a task cancelled before its first step never enters the finally block
        await self._response.aclose()

    async def __aenter__(self) -> ChunkStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
