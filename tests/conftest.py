"""
Shared fixtures: an in-memory worker transport and sample workspaces.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from pyworkbench.config import ExecutionConfig, WorkbenchConfig
from pyworkbench.session import WorkbenchSession
from pyworkbench.tree import Tree, new_file, new_folder

Reply = dict[str, Any] | None


def _ready(message: dict[str, Any]) -> Reply:
    return {"type": "ready"}


def _run(message: dict[str, Any]) -> Reply:
    return {"type": "result", "stdout": "", "stderr": "", "executionTime": 1.0}


def _install(message: dict[str, Any]) -> Reply:
    return {"type": "success", "message": f"Successfully installed {message['packageName']}"}


class FakeTransport:
    """
    In-memory stand-in for the worker process.

    Each request type has a handler returning the reply (without
    requestId), or None to stay silent. Replies are delivered on the next
    loop iteration, like a real pipe would.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, Callable[[dict[str, Any]], Reply]] = {
            "init": _ready,
            "run": _run,
            "install": _install,
        }
        self.sent: list[dict[str, Any]] = []
        self.starts = 0
        self.closed = False
        self._on_message: Callable[[dict[str, Any]], None] | None = None
        self._on_close: Callable[[], None] | None = None

    async def start(self, on_message, on_close) -> None:
        self.starts += 1
        self._on_message = on_message
        self._on_close = on_close

    async def send(self, message: dict[str, Any]) -> None:
        self.sent.append(message)
        reply = self.handlers[message["type"]](message)
        if reply is not None:
            reply = {**reply, "requestId": message["requestId"]}
            asyncio.get_running_loop().call_soon(self.deliver, reply)

    async def close(self) -> None:
        self.closed = True

    def deliver(self, message: dict[str, Any]) -> None:
        assert self._on_message is not None
        self._on_message(message)

    def disconnect(self) -> None:
        assert self._on_close is not None
        self._on_close()

    def sent_of_type(self, request_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["type"] == request_type]


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def config() -> WorkbenchConfig:
    return WorkbenchConfig(execution=ExecutionConfig(run_timeout=5.0, test_timeout=5.0, init_timeout=5.0))


@pytest.fixture
def sample_tree() -> Tree:
    """
    main.py
    src/
      utils.py
      pkg/
        mod.py
    README.md
    """
    return (
        new_file("main.py", "print('hello')\n"),
        new_folder("src", (
            new_file("utils.py", "def helper():\n    return 1\n"),
            new_folder("pkg", (new_file("mod.py", "X = 1\n"),)),
        )),
        new_file("README.md", "# Project\n"),
    )


@pytest.fixture
def session(sample_tree: Tree, fake_transport: FakeTransport, config: WorkbenchConfig) -> WorkbenchSession:
    return WorkbenchSession(tree=sample_tree, config=config, transport=fake_transport)
