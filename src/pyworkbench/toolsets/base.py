"""
Helpers shared by the built-in tool sets.

Handlers receive the registry's merged mapping: the caller's arguments
plus the execution context (file_tree, update_file_tree, channel,
packages).
"""

from collections.abc import Callable, Mapping
from typing import Any

from pyworkbench.errors import ChannelStateError, ValidationError
from pyworkbench.mutations import Mutation
from pyworkbench.tree import Tree


def commit(arguments: Mapping[str, Any], operation: Callable[[Tree], Mutation]) -> Mutation:
    """
    Apply a mutation through the context's update_file_tree callback.

    The operation runs against the live tree inside the atomic swap, not
    against the snapshot the call started with, so two mutating calls
    can never overwrite each other's work.
    """
    applied: list[Mutation] = []

    def updater(tree: Tree) -> Tree:
        mutation = operation(tree)
        applied.append(mutation)
        return mutation.tree

    arguments["update_file_tree"](updater)
    return applied[-1]


def require_channel(arguments: Mapping[str, Any]) -> Any:
    channel = arguments.get("channel")
    if channel is None:
        raise ChannelStateError("Execution channel not available")
    return channel


def timeout_seconds(arguments: Mapping[str, Any], default: float) -> float:
    """Read the optional millisecond timeout argument as seconds."""
    value = arguments.get("timeout")
    if value is None:
        return default
    if value <= 0:
        raise ValidationError("timeout must be a positive number of milliseconds")
    return value / 1000


def schema(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": list(required or [])}
