"""
Code editing tools - targeted text changes to existing files.

All of these fail on a missing path or a folder; none of them creates a
file (write_file does that).
"""

from collections.abc import Mapping
from typing import Any

from pyworkbench import mutations
from pyworkbench.tools import ToolCategory, ToolRegistry
from pyworkbench.toolsets.base import commit, schema
from pyworkbench.types import ToolResult

FILE_PATH = {"type": "string", "description": "Path to the file to edit"}


async def modify_text(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments["filePath"]
    mutation = commit(
        arguments,
        lambda tree: mutations.modify_text(
            tree,
            path,
            new_content=arguments.get("newContent"),
            find_text=arguments.get("findText"),
            replace_text=arguments.get("replaceText"),
            replace_all=bool(arguments.get("replaceAll", False)),
        ),
    )
    return ToolResult.ok(mutation.data)


async def insert_text_at_line(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments["filePath"]
    mutation = commit(
        arguments,
        lambda tree: mutations.insert_lines(
            tree, path, arguments["lineNumber"], arguments["content"]
        ),
    )
    return ToolResult.ok(mutation.data)


async def delete_lines(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments["filePath"]
    mutation = commit(
        arguments,
        lambda tree: mutations.delete_lines(
            tree, path, arguments["startLine"], arguments.get("endLine")
        ),
    )
    return ToolResult.ok(mutation.data)


async def append_text(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments["filePath"]
    add_newline = arguments.get("addNewline")
    mutation = commit(
        arguments,
        lambda tree: mutations.append_text(
            tree, path, arguments["content"], True if add_newline is None else add_newline
        ),
    )
    return ToolResult.ok(mutation.data)


async def prepend_text(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments["filePath"]
    add_newline = arguments.get("addNewline")
    mutation = commit(
        arguments,
        lambda tree: mutations.prepend_text(
            tree, path, arguments["content"], True if add_newline is None else add_newline
        ),
    )
    return ToolResult.ok(mutation.data)


def register_editing_tools(registry: ToolRegistry) -> None:
    registry.register_function(
        name="modify_text",
        description=(
            "Modify a file either by replacing its whole content (newContent) "
            "or by replacing specific text (findText + replaceText)"
        ),
        parameters=schema(
            {
                "filePath": FILE_PATH,
                "newContent": {
                    "type": "string",
                    "description": "New content for the entire file",
                },
                "findText": {
                    "type": "string",
                    "description": "Text to find and replace",
                },
                "replaceText": {
                    "type": "string",
                    "description": "Text to replace with (required with findText, may be empty)",
                },
                "replaceAll": {
                    "type": "boolean",
                    "description": "Whether to replace all occurrences (default: false)",
                    "default": False,
                },
            },
            ["filePath"],
        ),
        handler=modify_text,
        category=ToolCategory.EDITING,
    )

    registry.register_function(
        name="insert_text_at_line",
        description="Insert text at a specific line number in a file",
        parameters=schema(
            {
                "filePath": FILE_PATH,
                "lineNumber": {
                    "type": "integer",
                    "description": "Line number to insert at (1-based indexing)",
                },
                "content": {"type": "string", "description": "Text content to insert"},
            },
            ["filePath", "lineNumber", "content"],
        ),
        handler=insert_text_at_line,
        category=ToolCategory.EDITING,
    )

    registry.register_function(
        name="delete_lines",
        description="Delete a range of lines from a file",
        parameters=schema(
            {
                "filePath": FILE_PATH,
                "startLine": {
                    "type": "integer",
                    "description": "Starting line number (1-based, inclusive)",
                },
                "endLine": {
                    "type": "integer",
                    "description": "Ending line number (1-based, inclusive; defaults to startLine)",
                },
            },
            ["filePath", "startLine"],
        ),
        handler=delete_lines,
        category=ToolCategory.EDITING,
    )

    registry.register_function(
        name="append_text",
        description="Append text to the end of a file",
        parameters=schema(
            {
                "filePath": FILE_PATH,
                "content": {"type": "string", "description": "Text content to append"},
                "addNewline": {
                    "type": "boolean",
                    "description": "Add a newline before the text if the file doesn't end with one (default: true)",
                    "default": True,
                },
            },
            ["filePath", "content"],
        ),
        handler=append_text,
        category=ToolCategory.EDITING,
    )

    registry.register_function(
        name="prepend_text",
        description="Prepend text to the beginning of a file",
        parameters=schema(
            {
                "filePath": FILE_PATH,
                "content": {"type": "string", "description": "Text content to prepend"},
                "addNewline": {
                    "type": "boolean",
                    "description": "Add a newline after the prepended text (default: true)",
                    "default": True,
                },
            },
            ["filePath", "content"],
        ),
        handler=prepend_text,
        category=ToolCategory.EDITING,
    )
