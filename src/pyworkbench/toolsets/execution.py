"""
Code execution tools - run Python in the isolated runtime.

The runtime is booted on first use. Timeouts are given in milliseconds
and default to the channel's configured run/test timeouts.
"""

from collections.abc import Mapping
from typing import Any

from pyworkbench.channel import RunOutcome
from pyworkbench.errors import NotFoundError, ValidationError
from pyworkbench.tools import ToolCategory, ToolRegistry
from pyworkbench.toolsets.base import require_channel, schema, timeout_seconds
from pyworkbench.tree import flatten_files
from pyworkbench.types import ToolResult

RUN_TIMEOUT_MS = 30000
TEST_TIMEOUT_MS = 15000


def _check_files(files: Any) -> list[dict[str, str]]:
    checked: list[dict[str, str]] = []
    for index, item in enumerate(files or []):
        if (
            not isinstance(item, Mapping)
            or not isinstance(item.get("path"), str)
            or not isinstance(item.get("content"), str)
        ):
            raise ValidationError(
                f"files[{index}] must be an object with string 'path' and 'content'"
            )
        checked.append({"path": item["path"], "content": item["content"]})
    return checked


def _run_result(outcome: RunOutcome, **metadata: Any) -> ToolResult:
    if not outcome.success:
        return ToolResult.fail(
            outcome.error or "Unknown execution error", errorType="runtime_fault", **metadata
        )
    return ToolResult.ok(
        {
            "stdout": outcome.stdout,
            "stderr": outcome.stderr,
            "executionTime": outcome.execution_time,
            "success": True,
        },
        **metadata,
    )


async def execute_python(arguments: Mapping[str, Any]) -> ToolResult:
    channel = require_channel(arguments)
    code = arguments["code"]
    files = _check_files(arguments.get("files"))
    timeout = timeout_seconds(arguments, channel.config.run_timeout)

    await channel.ensure_ready()
    outcome = await channel.run(code, files=files, timeout=timeout)
    return _run_result(outcome, codeLength=len(code), filesIncluded=len(files))


async def execute_with_workspace(arguments: Mapping[str, Any]) -> ToolResult:
    channel = require_channel(arguments)
    code = arguments["code"]
    files = flatten_files(arguments["file_tree"])
    timeout = timeout_seconds(arguments, channel.config.run_timeout)

    await channel.ensure_ready()
    outcome = await channel.run(code, files=files, timeout=timeout)
    return _run_result(outcome, codeLength=len(code), workspaceFilesIncluded=len(files))


async def run_main_script(arguments: Mapping[str, Any]) -> ToolResult:
    channel = require_channel(arguments)
    entry_point = channel.config.entry_point
    fallback = arguments.get("fallbackCode") or ""
    files = flatten_files(arguments["file_tree"])
    has_entry = any(f["path"] == entry_point for f in files)
    if not has_entry and not fallback:
        raise NotFoundError(f"No {entry_point} file found and no fallback code provided")
    timeout = timeout_seconds(arguments, channel.config.run_timeout)

    await channel.ensure_ready()
    outcome = await channel.run(
        fallback,
        files=files,
        entry_point=entry_point if has_entry else None,
        timeout=timeout,
    )
    return _run_result(
        outcome,
        executedMainPy=has_entry,
        usedFallback=not has_entry,
        workspaceFilesIncluded=len(files),
    )


async def test_code(arguments: Mapping[str, Any]) -> ToolResult:
    channel = require_channel(arguments)
    code = arguments["code"]
    expected = arguments.get("expectedOutput")
    timeout = timeout_seconds(arguments, channel.config.test_timeout)

    await channel.ensure_ready()
    outcome = await channel.run(code, timeout=timeout)
    if not outcome.success:
        return _run_result(outcome, codeLength=len(code))

    passed = True
    message = ""
    if expected is not None:
        actual = outcome.stdout.strip()
        wanted = expected.strip()
        passed = actual == wanted
        message = (
            "Output matches expected result"
            if passed
            else f'Expected: "{wanted}", Got: "{actual}"'
        )

    return ToolResult.ok(
        {
            "stdout": outcome.stdout,
            "stderr": outcome.stderr,
            "executionTime": outcome.execution_time,
            "success": True,
            "testPassed": passed,
            "validationMessage": message,
            "hasErrors": outcome.has_errors,
        },
        codeLength=len(code),
        outputValidated=expected is not None,
    )


def register_execution_tools(registry: ToolRegistry) -> None:
    registry.register_function(
        name="execute_python",
        description="Execute Python code in the isolated runtime with optional file context",
        parameters=schema(
            {
                "code": {"type": "string", "description": "Python code to execute"},
                "files": {
                    "type": "array",
                    "description": "Optional files to include in the execution context",
                    "items": {
                        "type": "object",
                        "properties": {
                            "path": {"type": "string", "description": "File path"},
                            "content": {"type": "string", "description": "File content"},
                        },
                        "required": ["path", "content"],
                    },
                },
                "timeout": {
                    "type": "number",
                    "description": f"Execution timeout in milliseconds (default: {RUN_TIMEOUT_MS})",
                    "default": RUN_TIMEOUT_MS,
                },
            },
            ["code"],
        ),
        handler=execute_python,
        category=ToolCategory.EXECUTION,
    )

    registry.register_function(
        name="execute_with_workspace",
        description="Execute Python code with every workspace file available in its directory",
        parameters=schema(
            {
                "code": {"type": "string", "description": "Python code to execute"},
                "timeout": {
                    "type": "number",
                    "description": f"Execution timeout in milliseconds (default: {RUN_TIMEOUT_MS})",
                    "default": RUN_TIMEOUT_MS,
                },
            },
            ["code"],
        ),
        handler=execute_with_workspace,
        category=ToolCategory.EXECUTION,
    )

    registry.register_function(
        name="run_main_script",
        description="Execute the main.py file from the workspace, or fall back to provided code",
        parameters=schema(
            {
                "fallbackCode": {
                    "type": "string",
                    "description": "Code to execute if main.py doesn't exist (optional)",
                },
                "timeout": {
                    "type": "number",
                    "description": f"Execution timeout in milliseconds (default: {RUN_TIMEOUT_MS})",
                    "default": RUN_TIMEOUT_MS,
                },
            },
        ),
        handler=run_main_script,
        category=ToolCategory.EXECUTION,
    )

    registry.register_function(
        name="test_code",
        description="Execute Python code in a test run with optional output validation",
        parameters=schema(
            {
                "code": {"type": "string", "description": "Python code to test"},
                "expectedOutput": {
                    "type": "string",
                    "description": "Expected output for validation (optional)",
                },
                "timeout": {
                    "type": "number",
                    "description": f"Execution timeout in milliseconds (default: {TEST_TIMEOUT_MS})",
                    "default": TEST_TIMEOUT_MS,
                },
            },
            ["code"],
        ),
        handler=test_code,
        category=ToolCategory.EXECUTION,
    )
