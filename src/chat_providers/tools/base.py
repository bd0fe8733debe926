"""Tool declarations offered to the model.

Declarations only: execution belongs to the caller.  A :class:`Tool`
serializes to the OpenAI function-calling schema and is passed through
unchanged inside a completion request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

TOOL_TYPE_FUNCTION = "function"


@dataclass(frozen=True)
class Property:
    """JSON-schema description of one argument."""

    type: str  # string, integer, boolean, array, object
    description: str = ""
    enum: tuple[str, ...] = ()
    items: Property | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.enum:
            out["enum"] = list(self.enum)
        if self.description:
            out["description"] = self.description
        if self.items is not None:
            out["items"] = self.items.to_dict()
        return out


@dataclass(frozen=True)
class ToolParameters:
    properties: dict[str, Property] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    type: str = "object"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type,
            "properties": {name: p.to_dict() for name, p in self.properties.items()},
        }
        if self.required:
            out["required"] = list(self.required)
        return out


@dataclass(frozen=True)
class ToolFunction:
    name: str
    description: str
    parameters: ToolParameters = field(default_factory=ToolParameters)


@dataclass(frozen=True)
class Tool:
    """A callable capability the model may request."""

    function: ToolFunction
    type: str = TOOL_TYPE_FUNCTION

    @classmethod
    def define(
        cls,
        name: str,
        description: str,
        properties: dict[str, Property] | None = None,
        required: tuple[str, ...] = (),
    ) -> Tool:
        return cls(
            function=ToolFunction(
                name=name,
                description=description,
                parameters=ToolParameters(properties=dict(properties or {}), required=required),
            )
        )

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def description(self) -> str:
        return self.function.description

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": self.type,
            "function": {
                "name": self.function.name,
                "description": self.function.description,
                "parameters": self.function.parameters.to_dict(),
            },
        }

    def to_prompt_description(self) -> str:
        """Bullet list entry for prompt-based tool descriptions."""
        lines = [f"• {self.name}: {self.description}"]
        properties = self.function.parameters.properties
        if properties:
            lines.append("  Parameters:")
            for param_name, param in properties.items():
                lines.append(f"  - {param_name} ({param.type}): {param.description}")
        return "\n".join(lines)
