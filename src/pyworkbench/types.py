"""
Core types shared by the registry, the tools and their callers.

ToolResult is the single shape every tool call produces, successful or
not. ToolCall is how an external caller (usually a function-calling LLM)
asks for a tool to run.
"""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCall:
    """A request to execute a named tool with the given arguments."""
    id: str
    name: str
    arguments: dict[str, Any]

    @classmethod
    def from_openai(cls, data: dict[str, Any]) -> "ToolCall":
        """Create from an OpenAI-style tool call dict."""
        function = data.get("function") or {}
        raw_args = function.get("arguments") or "{}"
        arguments = json.loads(raw_args) if isinstance(raw_args, str) else dict(raw_args)
        return cls(
            id=str(data.get("id") or ""),
            name=str(function.get("name") or ""),
            arguments=arguments,
        )


@dataclass
class ToolResult:
    """
    The result of executing a tool.

    Exactly one of data/error is meaningful: data when success is True,
    error when it is False. metadata always carries executionTime (ms)
    once the result has passed through Tool.execute().
    """
    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None, **metadata: Any) -> "ToolResult":
        return cls(success=True, data=data, metadata=dict(metadata))

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> "ToolResult":
        return cls(success=False, error=error, metadata=dict(metadata))

    @property
    def execution_time(self) -> float | None:
        return self.metadata.get("executionTime")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict, omitting the unused half."""
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result["error"] = self.error
        result["metadata"] = dict(self.metadata)
        return result

    def to_message_content(self) -> str:
        """Render as the content of a tool message for an LLM conversation."""
        return json.dumps(self.to_dict(), indent=2, default=str)
