"""Uniform tool response envelope shared by every capability client."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any

from mcp.types import CallToolResult, TextContent


@dataclass(frozen=True)
class ToolResponse:
    """
    Result of one tool call.

    `text` holds either a plain human-readable message or a JSON payload,
    never both. Failures set `is_error`.
    """

    text: str
    is_error: bool = False

    @classmethod
    def ok(cls, message: str) -> ToolResponse:
        return cls(text=message)

    @classmethod
    def ok_json(cls, payload: Any, indent: int | None = None) -> ToolResponse:
        return cls(text=json.dumps(payload, indent=indent, default=str))

    @classmethod
    def error(cls, message: str) -> ToolResponse:
        return cls(text=message, is_error=True)

    def json(self) -> Any:
        """Decode the payload. Only meaningful for structured successes."""
        return json.loads(self.text)

    def to_text_content(self) -> list[TextContent]:
        return [TextContent(type="text", text=self.text)]

    def to_call_tool_result(self) -> CallToolResult:
        return CallToolResult(content=self.to_text_content(), isError=self.is_error)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: isError is present only on failures."""
        data: dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if self.is_error:
            data["isError"] = True
        return data
