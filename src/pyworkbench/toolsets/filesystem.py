"""
File system tools - read and write files in the workspace tree.
"""

from collections.abc import Mapping
from typing import Any

from pyworkbench import mutations
from pyworkbench.errors import NotFoundError, ValidationError
from pyworkbench.paths import join_path, normalize_path, resolve
from pyworkbench.tools import ToolCategory, ToolRegistry
from pyworkbench.toolsets.base import commit, schema
from pyworkbench.tree import WorkspaceNode
from pyworkbench.types import ToolResult


def _entry(node: WorkspaceNode, path: str, include_content: bool, recursive: bool) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": node.name, "type": node.type.value, "path": path}
    if node.is_file:
        entry["size"] = node.size
        if include_content:
            entry["content"] = node.content or ""
    elif recursive:
        entry["children"] = [
            _entry(child, join_path(path, child.name), include_content, recursive)
            for child in node.children or ()
        ]
    return entry


async def read_directory(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments.get("path") or ""
    include_content = bool(arguments.get("includeContent", False))
    recursive = bool(arguments.get("recursive", False))

    node = resolve(arguments["file_tree"], path)
    if node is None:
        raise NotFoundError(f"Directory not found: {path}")
    if not node.is_folder:
        raise ValidationError(f"Path is not a directory: {path}")

    base = normalize_path(path)
    entries = [
        _entry(child, join_path(base, child.name), include_content, recursive)
        for child in node.children or ()
    ]
    return ToolResult.ok({"path": base or "/", "entries": entries, "totalCount": len(entries)})


async def read_file(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments["path"]
    node = resolve(arguments["file_tree"], path)
    if node is None:
        raise NotFoundError(f"File not found: {path}")
    if not node.is_file:
        raise ValidationError(f"Path is not a file: {path}")
    return ToolResult.ok({
        "path": normalize_path(path),
        "content": node.content or "",
        "size": node.size,
    })


async def write_file(arguments: Mapping[str, Any]) -> ToolResult:
    path = arguments["path"]
    content = arguments["content"]
    mutation = commit(arguments, lambda tree: mutations.write_file(tree, path, content))
    return ToolResult.ok(mutation.data)


def register_filesystem_tools(registry: ToolRegistry) -> None:
    registry.register_function(
        name="read_directory",
        description="Read and list the contents of a directory, including files and subdirectories",
        parameters=schema(
            {
                "path": {
                    "type": "string",
                    "description": 'Directory path to read (empty string or "/" for root directory)',
                },
                "includeContent": {
                    "type": "boolean",
                    "description": "Whether to include file contents in the response (default: false)",
                    "default": False,
                },
                "recursive": {
                    "type": "boolean",
                    "description": "Whether to list every subdirectory at all depths (default: false)",
                    "default": False,
                },
            },
            ["path"],
        ),
        handler=read_directory,
        category=ToolCategory.FILESYSTEM,
    )

    registry.register_function(
        name="read_file",
        description="Read the contents of a specific file",
        parameters=schema(
            {"path": {"type": "string", "description": "File path to read"}},
            ["path"],
        ),
        handler=read_file,
        category=ToolCategory.FILESYSTEM,
    )

    registry.register_function(
        name="write_file",
        description="Write content to a file (creates the file if it doesn't exist)",
        parameters=schema(
            {
                "path": {"type": "string", "description": "File path to write to"},
                "content": {"type": "string", "description": "Content to write to the file"},
            },
            ["path", "content"],
        ),
        handler=write_file,
        category=ToolCategory.FILESYSTEM,
    )
