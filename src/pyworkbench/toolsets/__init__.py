"""
Built-in tool sets.

Each module registers one category of tools; register_default_tools
registers all of them.
"""

from pyworkbench.tools import ToolRegistry
from pyworkbench.toolsets.editing import register_editing_tools
from pyworkbench.toolsets.execution import register_execution_tools
from pyworkbench.toolsets.filesystem import register_filesystem_tools
from pyworkbench.toolsets.packages import register_package_tools
from pyworkbench.toolsets.workspace import register_workspace_tools


def register_default_tools(registry: ToolRegistry) -> ToolRegistry:
    """Register every built-in tool on the registry."""
    register_filesystem_tools(registry)
    register_editing_tools(registry)
    register_workspace_tools(registry)
    register_execution_tools(registry)
    register_package_tools(registry)
    return registry


__all__ = [
    "register_default_tools",
    "register_editing_tools",
    "register_execution_tools",
    "register_filesystem_tools",
    "register_package_tools",
    "register_workspace_tools",
]
