"""Tool declarations and results shared by every provider."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from estate_bot.core.types import ToolName


@dataclass(frozen=True)
class ToolSpec:
    """One callable tool: name, description for the model and JSON-schema parameters."""

    name: ToolName
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_anthropic(self) -> dict[str, Any]:
        return {
            "name": str(self.name),
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": str(self.name),
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_gemini(self) -> dict[str, Any]:
        """FunctionDeclaration fields; Gemini's OpenAPI subset has no ``default`` and upper-case types."""
        return {
            "name": str(self.name),
            "description": self.description,
            "parameters": _to_openapi(self.parameters),
        }


def _to_openapi(schema: Any) -> Any:
    if isinstance(schema, dict):
        converted = {}
        for key, value in schema.items():
            if key == "default":
                continue
            if key == "type" and isinstance(value, str):
                converted[key] = value.upper()
            else:
                converted[key] = _to_openapi(value)
        return converted
    if isinstance(schema, list):
        return [_to_openapi(v) for v in schema]
    return schema


@dataclass
class ToolResult:
    """Outcome of one tool call; failures are ordinary data fed back to the model."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> ToolResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, code: str = "tool_error") -> ToolResult:
        return cls(success=False, error=message, error_code=code)

    def to_payload(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error, "error_code": self.error_code}

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), default=str)
