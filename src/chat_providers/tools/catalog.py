"""Immutable tool catalog and its builder."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Iterator

from chat_providers.tools.base import Tool

_logger = logging.getLogger(__name__)


class ToolCatalog:
    """Read-only set of tool declarations keyed by name.

    Built once through :class:`ToolCatalogBuilder` and safe to share.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools = MappingProxyType({t.name: t for t in tools})

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def tool_names(self) -> list[str]:
        return list(self._tools)

    def available(
        self,
        allowed: Iterable[str] | None = None,
        excluded: Iterable[str] | None = None,
    ) -> list[Tool]:
        """Select tools by allow-list, else by exclusion, else all.

        A non-empty *allowed* wins over *excluded*; unknown names are ignored.
        """
        allowed = list(allowed or [])
        if allowed:
            return [self._tools[name] for name in allowed if name in self._tools]
        excluded = set(excluded or [])
        if excluded:
            return [t for name, t in self._tools.items() if name not in excluded]
        return list(self._tools.values())

    def get_openai_schemas(
        self,
        allowed: Iterable[str] | None = None,
        excluded: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]:
        return [t.to_openai_schema() for t in self.available(allowed, excluded)]

    def get_prompt_description(
        self,
        allowed: Iterable[str] | None = None,
        excluded: Iterable[str] | None = None,
    ) -> str:
        return "\n".join(t.to_prompt_description() for t in self.available(allowed, excluded))


class ToolCatalogBuilder:
    """Accumulates declarations; :meth:`build` freezes them."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def add(self, tool: Tool) -> ToolCatalogBuilder:
        if tool.name in self._tools:
            _logger.warning("Tool %s declared twice, keeping the last one", tool.name)
        self._tools[tool.name] = tool
        return self

    def add_if(self, condition: bool, tool: Tool) -> ToolCatalogBuilder:
        if condition:
            self.add(tool)
        return self

    def build(self) -> ToolCatalog:
        return ToolCatalog(self._tools.values())
