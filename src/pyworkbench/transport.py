"""
Worker transport - how the execution channel talks to its runtime.

The channel only needs three things from a transport: start it with a
message callback and a close callback, send one message, and close it.
SubprocessTransport implements that over a child Python process running
pyworkbench.worker, exchanging one JSON object per line on its stdio.
Tests substitute an in-memory transport with the same shape.
"""

import asyncio
import contextlib
import json
import logging
import sys
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], None]
CloseHandler = Callable[[], None]

# Replies can carry a whole program's output on one line.
STREAM_LIMIT = 16 * 1024 * 1024
CLOSE_GRACE_SECONDS = 2.0


class WorkerTransport(Protocol):
    """Protocol for a message link to an isolated runtime."""

    async def start(self, on_message: MessageHandler, on_close: CloseHandler) -> None: ...

    async def send(self, message: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class SubprocessTransport:
    """
    Runs the worker as `python -m pyworkbench.worker`.

    Requests go to the child's stdin, replies come back on its stdout.
    Anything the worker writes to stderr is forwarded to the log.
    """

    def __init__(
        self,
        python_executable: str | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        self.python_executable = python_executable or sys.executable
        self.env = env
        self.cwd = cwd
        self._process: asyncio.subprocess.Process | None = None
        self._reader: asyncio.Task[None] | None = None
        self._stderr_reader: asyncio.Task[None] | None = None
        self._on_message: MessageHandler | None = None
        self._on_close: CloseHandler | None = None
        self._closing = False

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self, on_message: MessageHandler, on_close: CloseHandler) -> None:
        if self.is_running:
            return
        self._on_message = on_message
        self._on_close = on_close
        self._closing = False
        self._process = await asyncio.create_subprocess_exec(
            self.python_executable,
            "-m",
            "pyworkbench.worker",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self.env,
            cwd=self.cwd,
            limit=STREAM_LIMIT,
        )
        logger.info(f"Started execution worker (pid {self._process.pid})")
        self._reader = asyncio.create_task(self._read_loop())
        self._stderr_reader = asyncio.create_task(self._drain_stderr())

    async def send(self, message: dict[str, Any]) -> None:
        if not self.is_running or self._process.stdin is None:
            raise ConnectionError("Worker process is not running")
        line = json.dumps(message, ensure_ascii=False) + "\n"
        self._process.stdin.write(line.encode("utf-8"))
        await self._process.stdin.drain()

    async def close(self) -> None:
        self._closing = True
        process = self._process
        if process is not None and process.returncode is None:
            if process.stdin is not None:
                process.stdin.close()
            try:
                await asyncio.wait_for(process.wait(), CLOSE_GRACE_SECONDS)
            except TimeoutError:
                logger.warning(f"Worker {process.pid} did not exit, killing it")
                process.kill()
                await process.wait()
        for task in (self._reader, self._stderr_reader):
            if task is not None and not task.done():
                task.cancel()
        self._process = None

    async def _read_loop(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        try:
            while True:
                try:
                    line = await stdout.readline()
                except (ValueError, asyncio.LimitOverrunError) as e:
                    # The stream is out of sync past an overlong line; drop the worker.
                    logger.error(f"Worker reply exceeded {STREAM_LIMIT} bytes, stopping worker: {e}")
                    self._kill()
                    break
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue
                try:
                    message = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"Discarding malformed worker output: {line[:200]!r}")
                    continue
                if not isinstance(message, dict):
                    logger.warning(f"Discarding non-object worker message: {message!r}")
                    continue
                if self._on_message is not None:
                    self._on_message(message)
        finally:
            if not self._closing and self._on_close is not None:
                self._on_close()

    def _kill(self) -> None:
        process = self._process
        self._process = None
        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stderr = self._process.stderr
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                logger.debug(f"worker: stderr line longer than {STREAM_LIMIT} bytes dropped")
                continue
            if not line:
                return
            logger.debug(f"worker: {line.decode('utf-8', errors='replace').rstrip()}")
