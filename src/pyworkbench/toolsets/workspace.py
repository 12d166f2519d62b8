"""
Workspace tools - create, delete, rename, move and copy items.
"""

from collections.abc import Mapping
from typing import Any

from pyworkbench import mutations
from pyworkbench.tools import ToolCategory, ToolRegistry
from pyworkbench.toolsets.base import commit, schema
from pyworkbench.types import ToolResult


async def create_item(arguments: Mapping[str, Any]) -> ToolResult:
    mutation = commit(
        arguments,
        lambda tree: mutations.create_item(
            tree, arguments["path"], arguments["type"], arguments.get("content") or ""
        ),
    )
    return ToolResult.ok(mutation.data)


async def delete_item(arguments: Mapping[str, Any]) -> ToolResult:
    mutation = commit(arguments, lambda tree: mutations.delete_item(tree, arguments["path"]))
    return ToolResult.ok(mutation.data)


async def rename_item(arguments: Mapping[str, Any]) -> ToolResult:
    mutation = commit(
        arguments,
        lambda tree: mutations.rename_item(tree, arguments["path"], arguments["newName"]),
    )
    return ToolResult.ok(mutation.data)


async def move_item(arguments: Mapping[str, Any]) -> ToolResult:
    mutation = commit(
        arguments,
        lambda tree: mutations.move_item(tree, arguments["sourcePath"], arguments["targetPath"]),
    )
    return ToolResult.ok(mutation.data)


async def copy_item(arguments: Mapping[str, Any]) -> ToolResult:
    mutation = commit(
        arguments,
        lambda tree: mutations.copy_item(
            tree, arguments["sourcePath"], arguments["targetPath"], arguments.get("newName")
        ),
    )
    return ToolResult.ok(mutation.data)


def register_workspace_tools(registry: ToolRegistry) -> None:
    registry.register_function(
        name="create_item",
        description="Create a new file or folder in the workspace",
        parameters=schema(
            {
                "path": {
                    "type": "string",
                    "description": "Path where to create the item (including the item name)",
                },
                "type": {
                    "type": "string",
                    "enum": ["file", "folder"],
                    "description": "Type of item to create",
                },
                "content": {
                    "type": "string",
                    "description": "Initial content for files (optional)",
                },
            },
            ["path", "type"],
        ),
        handler=create_item,
        category=ToolCategory.WORKSPACE,
    )

    registry.register_function(
        name="delete_item",
        description="Delete a file or folder (and everything inside it) from the workspace",
        parameters=schema(
            {"path": {"type": "string", "description": "Path of the item to delete"}},
            ["path"],
        ),
        handler=delete_item,
        category=ToolCategory.WORKSPACE,
    )

    registry.register_function(
        name="rename_item",
        description="Rename a file or folder in the workspace",
        parameters=schema(
            {
                "path": {"type": "string", "description": "Current path of the item to rename"},
                "newName": {"type": "string", "description": "New name for the item"},
            },
            ["path", "newName"],
        ),
        handler=rename_item,
        category=ToolCategory.WORKSPACE,
    )

    registry.register_function(
        name="move_item",
        description="Move a file or folder to a different location in the workspace",
        parameters=schema(
            {
                "sourcePath": {"type": "string", "description": "Current path of the item to move"},
                "targetPath": {
                    "type": "string",
                    "description": "Target directory path (empty string for root)",
                },
            },
            ["sourcePath", "targetPath"],
        ),
        handler=move_item,
        category=ToolCategory.WORKSPACE,
    )

    registry.register_function(
        name="copy_item",
        description="Copy a file or folder to a different location in the workspace",
        parameters=schema(
            {
                "sourcePath": {"type": "string", "description": "Current path of the item to copy"},
                "targetPath": {
                    "type": "string",
                    "description": "Target directory path (empty string for root)",
                },
                "newName": {
                    "type": "string",
                    "description": "Optional new name for the copied item",
                },
            },
            ["sourcePath", "targetPath"],
        ),
        handler=copy_item,
        category=ToolCategory.WORKSPACE,
    )
