"""
pyworkbench - a tool-calling workbench for AI agents.

An agent works on a virtual, in-memory project workspace through a
registry of validated tools, and runs code against that workspace in an
isolated Python worker process.

Core components:
- tree / paths / mutations: the workspace model and its pure operations
- tools: the registry that validates, dispatches and reports tool calls
- channel / transport / worker: request/reply with the isolated runtime
- session: one workspace, registry and runtime wired together
"""

from pyworkbench.channel import ChannelState, ExecutionChannel, InstallOutcome, RunOutcome
from pyworkbench.config import ExecutionConfig, RegistryConfig, TurnConfig, WorkbenchConfig
from pyworkbench.errors import (
    ChannelStateError,
    ConflictError,
    ExecutionTimeoutError,
    NotFoundError,
    RuntimeFaultError,
    ValidationError,
    WorkbenchError,
)
from pyworkbench.packages import InstalledPackageSet
from pyworkbench.session import WorkbenchSession
from pyworkbench.tools import ExecutionContext, Tool, ToolCategory, ToolRegistry
from pyworkbench.tree import NodeType, WorkspaceNode
from pyworkbench.turn import CancelToken, ToolTurn, TurnResult
from pyworkbench.types import ToolCall, ToolResult

__version__ = "0.1.0"

__all__ = [
    "CancelToken",
    "ChannelState",
    "ChannelStateError",
    "ConflictError",
    "ExecutionChannel",
    "ExecutionConfig",
    "ExecutionContext",
    "ExecutionTimeoutError",
    "InstallOutcome",
    "InstalledPackageSet",
    "NodeType",
    "NotFoundError",
    "RegistryConfig",
    "RunOutcome",
    "RuntimeFaultError",
    "Tool",
    "ToolCall",
    "ToolCategory",
    "ToolRegistry",
    "ToolResult",
    "ToolTurn",
    "TurnConfig",
    "TurnResult",
    "ValidationError",
    "WorkbenchConfig",
    "WorkbenchError",
    "WorkbenchSession",
    "WorkspaceNode",
]
