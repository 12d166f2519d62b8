"""
Workbench Session - the unit that owns a workspace and its runtime.

A session owns the workspace tree, the tool registry, the execution
channel and the installed package set. All state lives in memory and is
discarded when the session closes; there is no persistence.

The tree is only ever changed by swapping in a whole new tree value under
a lock (replace_tree). Each swap re-publishes the registry's execution
context, so the next tool call sees the new tree, and notifies removal
listeners with the ids that disappeared.
"""

import logging
import threading
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from pyworkbench.channel import ExecutionChannel
from pyworkbench.config import WorkbenchConfig
from pyworkbench.events import EventLog
from pyworkbench.packages import InstalledPackageSet
from pyworkbench.tools import ExecutionContext, ToolRegistry
from pyworkbench.toolsets import register_default_tools
from pyworkbench.transport import SubprocessTransport, WorkerTransport
from pyworkbench.tree import Tree, check_tree, collect_ids, tree_from_dicts, tree_to_dicts
from pyworkbench.turn import ToolTurn
from pyworkbench.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)

RemovalListener = Callable[[set[str]], None]
TreeUpdater = Callable[[Tree], Tree]


class WorkbenchSession:
    """
    One workspace, one registry, one runtime.

    Args:
        tree: Initial workspace tree
        config: Settings (defaults to WorkbenchConfig())
        transport: Link to the runtime; a SubprocessTransport is created
            when none is given. The runtime is only booted on first use.
        enable_execution: When False the session has no channel and
            execution/package tools report that none is available
        register_defaults: Register the built-in tool set
        extras: Additional context keys passed to every tool
    """

    def __init__(
        self,
        tree: Tree = (),
        config: WorkbenchConfig | None = None,
        transport: WorkerTransport | None = None,
        enable_execution: bool = True,
        register_defaults: bool = True,
        extras: Mapping[str, Any] | None = None,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.config = config or WorkbenchConfig()
        tree = tuple(tree)
        check_tree(tree)
        self._tree: Tree = tree
        self._lock = threading.Lock()
        self._removal_listeners: list[RemovalListener] = []
        self._extras = dict(extras or {})
        self._closed = False

        self.packages = InstalledPackageSet()
        self.channel: ExecutionChannel | None = None
        if enable_execution:
            self.channel = ExecutionChannel(
                transport or SubprocessTransport(self.config.execution.python_executable),
                config=self.config.execution,
                packages=self.packages,
            )

        self.registry = ToolRegistry(EventLog(max_events=self.config.registry.max_events))
        if register_defaults:
            register_default_tools(self.registry)
        self._publish()

    @classmethod
    def from_dicts(cls, items: list[dict[str, Any]], **kwargs: Any) -> "WorkbenchSession":
        return cls(tree=tree_from_dicts(items), **kwargs)

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    @property
    def tree(self) -> Tree:
        return self._tree

    def tree_as_dicts(self) -> list[dict[str, Any]]:
        return tree_to_dicts(self._tree)

    def replace_tree(self, updater: TreeUpdater) -> Tree:
        """
        Atomically swap the tree for updater(current tree).

        The updater runs under the lock against the live tree. If it
        raises, or the result breaks a tree invariant, nothing changes.
        """
        with self._lock:
            old = self._tree
            new = tuple(updater(old))
            check_tree(new)
            self._tree = new
            self._publish()

        removed = collect_ids(old) - collect_ids(new)
        if removed:
            self._notify_removed(removed)
        return new

    def set_tree(self, tree: Tree) -> Tree:
        return self.replace_tree(lambda _: tuple(tree))

    def on_nodes_removed(self, listener: RemovalListener) -> Callable[[], None]:
        """Register a listener for vanished node ids. Returns an unsubscribe function."""
        self._removal_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._removal_listeners:
                self._removal_listeners.remove(listener)

        return unsubscribe

    def _notify_removed(self, removed: set[str]) -> None:
        logger.debug(f"Nodes removed from workspace: {len(removed)}")
        for listener in list(self._removal_listeners):
            try:
                listener(set(removed))
            except Exception:
                logger.exception("Node removal listener failed")

    def _publish(self) -> None:
        self.registry.set_context(
            ExecutionContext(
                file_tree=self._tree,
                update_file_tree=self.replace_tree,
                channel=self.channel,
                packages=self.packages,
                extras=self._extras,
            )
        )

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def execute(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """Execute a tool by name against this session's workspace."""
        self._check_not_closed()
        return await self.registry.execute(name, arguments)

    async def execute_call(self, tool_call: ToolCall) -> ToolResult:
        self._check_not_closed()
        return await self.registry.execute_call(tool_call)

    def turn(self, stop_on_failure: bool = False) -> ToolTurn:
        """A ToolTurn over this session's registry, limited by config.turn."""
        return ToolTurn(self.registry, self.config.turn, stop_on_failure=stop_on_failure)

    def runtime_status(self) -> dict[str, Any]:
        if self.channel is None:
            return {"state": "disabled", "installedPackages": self.packages.sorted()}
        return self.channel.describe()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close the session and shut down its runtime."""
        if self._closed:
            return
        self._closed = True
        if self.channel is not None:
            await self.channel.close()
        logger.debug(f"Closed workbench session {self.id}")

    def _check_not_closed(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed")

    async def __aenter__(self) -> "WorkbenchSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
