"""
Package management tools - install packages into the runtime, once.
"""

from collections.abc import Mapping
from typing import Any

from pyworkbench.tools import ToolCategory, ToolRegistry
from pyworkbench.toolsets.base import require_channel, schema
from pyworkbench.types import ToolResult


async def install_package(arguments: Mapping[str, Any]) -> ToolResult:
    channel = require_channel(arguments)
    name = arguments["packageName"]
    if name not in channel.packages:
        await channel.ensure_ready()
    outcome = await channel.install(name)
    if not outcome.success:
        return ToolResult.fail(
            outcome.error or f"Failed to install package {name}",
            errorType="runtime_fault",
            packageName=outcome.package_name,
        )
    return ToolResult.ok({
        "packageName": outcome.package_name,
        "message": outcome.message,
        "alreadyInstalled": outcome.already_installed,
    })


async def list_packages(arguments: Mapping[str, Any]) -> ToolResult:
    packages = arguments.get("packages")
    names = packages.sorted() if packages is not None else []
    return ToolResult.ok({"packages": names, "count": len(names)})


def register_package_tools(registry: ToolRegistry) -> None:
    registry.register_function(
        name="install_package",
        description="Install a package into the Python runtime (no-op if already installed)",
        parameters=schema(
            {
                "packageName": {
                    "type": "string",
                    "description": "The name of the package to install",
                },
            },
            ["packageName"],
        ),
        handler=install_package,
        category=ToolCategory.PACKAGES,
    )

    registry.register_function(
        name="list_packages",
        description="List the packages installed into the current runtime",
        parameters=schema({}),
        handler=list_packages,
        category=ToolCategory.PACKAGES,
    )
