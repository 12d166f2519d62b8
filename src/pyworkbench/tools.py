"""
Tool System - the only way an agent touches the workspace or the runtime.

A Tool is a named, schema-described async handler. The ToolRegistry owns
the set of tools and the shared execution context, and is the single
entry point through which calls are dispatched: it looks the tool up,
merges the context into the caller's arguments, validates the merged
mapping against the tool's JSON schema, runs the handler and reports a
ToolResult. Nothing raised by a handler escapes execute(); failures come
back as ToolResult(success=False).
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pyworkbench.errors import ChannelStateError, WorkbenchError
from pyworkbench.events import EventLog, EventType
from pyworkbench.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Mapping[str, Any]], Awaitable[ToolResult | Any]]

# Keys that always come from the execution context, never from the caller.
CONTEXT_KEYS = ("file_tree", "update_file_tree", "channel", "packages")


class ToolCategory(Enum):
    """Categories for organizing tools."""
    FILESYSTEM = "filesystem"
    EDITING = "editing"
    WORKSPACE = "workspace"
    EXECUTION = "execution"
    PACKAGES = "packages"


@dataclass
class ValidationResult:
    """Outcome of checking arguments against a tool schema."""
    valid: bool
    errors: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "Parameter validation failed: " + ", ".join(self.errors)


@dataclass
class ExecutionContext:
    """
    Shared state injected into every tool call.

    - file_tree: the workspace tree as of the last swap
    - update_file_tree: callback taking an updater (tree -> tree) and
      applying it atomically to the live tree
    - channel: handle to the execution channel, if any
    - packages: the installed package set, if any
    - extras: any further keys a caller wants every tool to see
    """
    file_tree: Any
    update_file_tree: Callable[[Callable[[Any], Any]], Any]
    channel: Any = None
    packages: Any = None
    extras: dict[str, Any] = field(default_factory=dict)

    def snapshot(self) -> dict[str, Any]:
        """A copy of the context as a plain mapping; core keys win over extras."""
        merged = dict(self.extras)
        merged.update(
            file_tree=self.file_tree,
            update_file_tree=self.update_file_tree,
            channel=self.channel,
            packages=self.packages,
        )
        return merged


_JSON_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, (list, tuple)),
    "object": lambda v: isinstance(v, Mapping),
}


def _type_matches(expected: str | list[str], value: Any) -> bool:
    expected_types = [expected] if isinstance(expected, str) else list(expected)
    for name in expected_types:
        check = _JSON_TYPE_CHECKS.get(name)
        if check is None or check(value):
            return True
    return False


@dataclass
class Tool:
    """
    Definition of a tool an agent can call.

    - name: unique key in the registry
    - description: what the tool does (shown to the LLM)
    - parameters: JSON schema object (properties + required)
    - handler: async function receiving the merged argument mapping
    - category: used for grouping and schema filtering
    """
    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler
    category: ToolCategory = ToolCategory.WORKSPACE

    @property
    def properties(self) -> dict[str, Any]:
        return self.parameters.get("properties", {})

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_schema(self) -> dict[str, Any]:
        """Export as {name, description, parameters}."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": self.properties,
                "required": self.required,
            },
        }

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI tool format."""
        return {"type": "function", "function": self.to_schema()}

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        """
        Run the handler and time it.

        Expected failures (WorkbenchError) become a failed result carrying
        the error type; anything else is logged with its traceback and
        reported generically. Cancellation is never caught.
        """
        start = time.perf_counter()
        try:
            outcome = await self.handler(arguments)
            result = outcome if isinstance(outcome, ToolResult) else ToolResult.ok(outcome)
        except WorkbenchError as e:
            result = ToolResult.fail(str(e), errorType=e.error_type)
        except Exception as e:
            logger.exception(f"Tool {self.name} raised an unexpected error")
            result = ToolResult.fail(
                f"Unexpected error in tool '{self.name}': {e}",
                errorType="unexpected",
            )
        result.metadata["executionTime"] = (time.perf_counter() - start) * 1000
        return result


class ToolRegistry:
    """
    Registry of available tools and the context they run against.

    Only tools registered here can be called. Re-registering a name
    replaces the previous tool; that is logged, recorded in the event
    log, and reported by register()'s return value.
    """

    def __init__(self, event_log: EventLog | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        self._context: ExecutionContext | None = None
        self._executions = 0
        self._failures = 0
        self.event_log = event_log if event_log is not None else EventLog()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, tool: Tool) -> bool:
        """Register a tool. Returns True if an existing tool was overwritten."""
        overwritten = tool.name in self._tools
        if overwritten:
            logger.warning(f"Overwriting existing tool: {tool.name}")
            self.event_log.log_event(
                EventType.TOOL_OVERWRITTEN,
                tool.name,
                previous_category=self._tools[tool.name].category.value,
                category=tool.category.value,
            )
        else:
            self.event_log.log_event(
                EventType.TOOL_REGISTERED, tool.name, category=tool.category.value
            )
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")
        return overwritten

    def register_function(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
        handler: ToolHandler,
        category: ToolCategory = ToolCategory.WORKSPACE,
    ) -> Tool:
        """Convenience method to register a function as a tool."""
        tool = Tool(
            name=name,
            description=description,
            parameters=parameters,
            handler=handler,
            category=category,
        )
        self.register(tool)
        return tool

    def unregister(self, name: str) -> bool:
        removed = self._tools.pop(name, None)
        if removed is not None:
            self.event_log.log_event(EventType.TOOL_UNREGISTERED, name)
            logger.debug(f"Unregistered tool: {name}")
        return removed is not None

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def clear(self) -> None:
        self._tools.clear()

    @property
    def tool_names(self) -> list[str]:
        """List of registered tool names."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def set_context(self, context: ExecutionContext) -> None:
        self._context = context
        self.event_log.log_event(EventType.CONTEXT_SET)

    def get_context(self) -> ExecutionContext | None:
        return self._context

    # ------------------------------------------------------------------
    # Validation and dispatch
    # ------------------------------------------------------------------

    def validate_parameters(self, name: str, arguments: Mapping[str, Any]) -> ValidationResult:
        """
        Check arguments against a tool's schema.

        Required keys must be present and not None; every supplied
        property must match its declared JSON type. All violations are
        collected rather than stopping at the first.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ValidationResult(valid=False, errors=[f"Tool '{name}' not found in registry"])

        errors: list[str] = []
        for param in tool.required:
            if arguments.get(param) is None:
                errors.append(f"Missing required parameter: {param}")

        for param, spec in tool.properties.items():
            value = arguments.get(param)
            expected = spec.get("type")
            if value is None or expected is None:
                continue
            if not _type_matches(expected, value):
                errors.append(f"Parameter '{param}' must be of type {expected}")

        return ValidationResult(valid=not errors, errors=errors)

    async def execute(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """
        Execute a tool by name.

        This is the controlled entry point for every workspace change and
        every runtime request.
        """
        start = time.perf_counter()
        arguments = dict(arguments or {})
        self.event_log.log_event(
            EventType.TOOL_CALL_RECEIVED, name, arguments=sorted(arguments)
        )

        tool = self._tools.get(name)
        if tool is None:
            result = ToolResult.fail(f"Tool '{name}' not found in registry", errorType="not_found")
            self.event_log.log_event(EventType.ERROR, name, error=result.error)
            return self._finish(name, result, start)

        if self._context is None:
            error = ChannelStateError("Tool execution context not set. Call set_context() first.")
            result = ToolResult.fail(str(error), errorType=error.error_type)
            self.event_log.log_event(EventType.ERROR, name, error=result.error)
            return self._finish(name, result, start)

        merged = {**arguments, **self._context.snapshot()}

        validation = self.validate_parameters(name, merged)
        self.event_log.log_event(
            EventType.SCHEMA_VALIDATION, name, valid=validation.valid, errors=validation.errors
        )
        if not validation.valid:
            result = ToolResult.fail(validation.message, errorType="validation")
            return self._finish(name, result, start)

        logger.info(f"Executing tool: {name}")
        self.event_log.log_event(EventType.TOOL_DISPATCH, name, category=tool.category.value)
        self.event_log.log_event(EventType.TOOL_EXECUTION_START, name)
        try:
            result = await tool.execute(merged)
        except asyncio.CancelledError:
            self.event_log.log_event(EventType.ERROR, name, error="cancelled")
            raise
        self.event_log.log_event(
            EventType.TOOL_EXECUTION_END,
            name,
            success=result.success,
            execution_time=result.metadata.get("executionTime"),
        )
        return self._finish(name, result, start)

    async def execute_call(self, tool_call: ToolCall) -> ToolResult:
        """Execute an LLM-issued tool call."""
        result = await self.execute(tool_call.name, tool_call.arguments)
        result.metadata["toolCallId"] = tool_call.id
        return result

    def _finish(self, name: str, result: ToolResult, start: float) -> ToolResult:
        self._executions += 1
        if not result.success:
            self._failures += 1
        result.metadata.setdefault("executionTime", 0.0)
        result.metadata["toolName"] = name
        result.metadata["registryExecutionTime"] = (time.perf_counter() - start) * 1000
        self.event_log.log_event(
            EventType.TOOL_RESULT_RETURNED, name, success=result.success, error=result.error
        )
        return result

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_tools_by_category(self, category: ToolCategory | str) -> list[Tool]:
        category = ToolCategory(category)
        return [tool for tool in self._tools.values() if tool.category == category]

    def get_available_categories(self) -> dict[str, list[str]]:
        """Get all populated tool categories and their tools."""
        categories: dict[str, list[str]] = {}
        for tool in self._tools.values():
            categories.setdefault(tool.category.value, []).append(tool.name)
        return categories

    def get_tool_schema(self, name: str) -> dict[str, Any] | None:
        tool = self._tools.get(name)
        return tool.to_schema() if tool is not None else None

    def get_all_tool_schemas(self) -> list[dict[str, Any]]:
        return [tool.to_schema() for tool in self._tools.values()]

    def get_openai_schemas(self) -> list[dict[str, Any]]:
        """Get OpenAI-format schemas for all registered tools."""
        return [tool.to_openai_schema() for tool in self._tools.values()]

    def get_stats(self) -> dict[str, Any]:
        return {
            "totalTools": len(self._tools),
            "categoryCounts": {
                category: len(names)
                for category, names in self.get_available_categories().items()
            },
            "hasContext": self._context is not None,
            "totalExecutions": self._executions,
            "failedExecutions": self._failures,
        }


def create_tool_response(tool_call_id: str, result: ToolResult) -> dict[str, Any]:
    """Format a result as an OpenAI tool message."""
    return {
        "role": "tool",
        "tool_call_id": tool_call_id,
        "content": result.to_message_content(),
    }
