"""Tool declarations for chat-providers."""

from chat_providers.tools.base import Property, Tool, ToolFunction, ToolParameters
from chat_providers.tools.builtin import build_default_catalog
from chat_providers.tools.catalog import ToolCatalog, ToolCatalogBuilder

__all__ = [
    "Property",
    "Tool",
    "ToolCatalog",
    "ToolCatalogBuilder",
    "ToolFunction",
    "ToolParameters",
    "build_default_catalog",
]
