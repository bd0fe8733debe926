"""Minimal HTTP wrapper shared by provider clients.

Injects bearer auth, resolves relative paths against the provider base URL
and logs every outgoing request body with large fields truncated.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any

import httpx

_logger = logging.getLogger(__name__)

_TRUNCATED_FIELDS = frozenset({"url", "content", "text", "file_data"})
_TRUNCATE_AT = 1000


def truncate_large_fields(data: dict[str, Any]) -> None:
    """Cut oversized payload strings in place (base64 files, long prompts)."""
    for key, value in data.items():
        if isinstance(value, str):
            if key in _TRUNCATED_FIELDS and len(value) > _TRUNCATE_AT:
                data[key] = value[:_TRUNCATE_AT] + "...[truncated]"
        elif isinstance(value, dict):
            truncate_large_fields(value)
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    truncate_large_fields(item)


class HTTPTransport:
    """Async HTTP transport bound to one provider.

    Parameters
    ----------
    base_url:
        Prefix for relative request paths.  Absolute URLs pass through.
    api_key:
        Sent as ``Authorization: Bearer ...`` when non-empty.
    client:
        Optional shared ``httpx.AsyncClient``.  When omitted the transport
        creates and owns one.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 120,
    ) -> None:
        self.base_url = base_url
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=30),
        )

    def resolve_url(self, path: str) -> str:
        if not self.base_url or path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        """Send a request and return the response.

        With ``stream=True`` the body is left unread; the caller must close
        the response.  Transport failures raise ``httpx.HTTPError``.
        """
        req_headers = {"Content-Type": "application/json"}
        if self._api_key:
            req_headers["Authorization"] = f"Bearer {self._api_key}"
        if headers:
            req_headers.update(headers)

        url = self.resolve_url(path)
        content = json.dumps(json_body).encode() if json_body is not None else None
        self._log_request(method, url, json_body)

        request = self._client.build_request(
            method, url, content=content, headers=req_headers,
        )
        return await self._client.send(request, stream=stream)

    def _log_request(self, method: str, url: str, body: Any) -> None:
        if not _logger.isEnabledFor(logging.DEBUG):
            return
        logged = copy.deepcopy(body)
        if isinstance(logged, dict):
            truncate_large_fields(logged)
        try:
            line = json.dumps({"url": url, "method": method, "body": logged}, ensure_ascii=False)
        except (TypeError, ValueError):
            _logger.exception("Failed to encode request log for %s %s", method, url)
            return
        _logger.debug("HTTP request: %s", line)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
