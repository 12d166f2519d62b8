"""
Execution Session Channel - asynchronous request/reply with the runtime.

One channel talks to one isolated runtime through a WorkerTransport. It
is a small state machine:

    UNINITIALIZED -> INITIALIZING -> READY <-> BUSY
    ERROR is reachable from anywhere; CLOSED after close().

Every request carries a unique requestId that the worker echoes back, and
replies are matched to pending sessions by that id. A reply whose id is
not pending (it arrived after its session timed out, or carries no id)
is counted as stale and dropped, so it can never satisfy a later call.

Only one run or install may be outstanding at a time; a second call while
BUSY is rejected rather than queued.
"""

import asyncio
import itertools
import logging
from collections import Counter, deque
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pyworkbench.config import ExecutionConfig
from pyworkbench.errors import (
    ChannelStateError,
    ExecutionTimeoutError,
    RuntimeFaultError,
    ValidationError,
)
from pyworkbench.packages import InstalledPackageSet
from pyworkbench.transport import WorkerTransport

logger = logging.getLogger(__name__)


class ChannelState(Enum):
    """Lifecycle states of an execution channel."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    BUSY = "busy"
    ERROR = "error"
    CLOSED = "closed"


class SessionStatus(Enum):
    """Outcome of one request/reply cycle."""
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class RequestKind(Enum):
    INIT = "init"
    RUN = "run"
    INSTALL = "install"


@dataclass
class ExecutionSession:
    """One outstanding request and its deadline (loop time, seconds)."""
    request_id: str
    kind: RequestKind
    started_at: float
    timeout_at: float
    future: asyncio.Future[dict[str, Any]] = field(repr=False)
    status: SessionStatus = SessionStatus.PENDING
    finished_at: float | None = None

    @property
    def duration(self) -> float | None:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "duration": self.duration,
        }


@dataclass
class RunOutcome:
    """What a run request produced."""
    success: bool
    stdout: str = ""
    stderr: str = ""
    execution_time: float | None = None
    error: str | None = None

    @property
    def has_errors(self) -> bool:
        return not self.success or bool(self.stderr.strip())


@dataclass
class InstallOutcome:
    """What an install request produced."""
    package_name: str
    success: bool
    already_installed: bool = False
    message: str | None = None
    error: str | None = None


class ExecutionChannel:
    """
    The caller's side of the link to one isolated runtime.

    The channel owns the installed package set for its runtime and resets
    it every time the runtime is (re)initialized.
    """

    def __init__(
        self,
        transport: WorkerTransport,
        config: ExecutionConfig | None = None,
        packages: InstalledPackageSet | None = None,
    ) -> None:
        self.transport = transport
        self.config = config or ExecutionConfig()
        self.packages = packages if packages is not None else InstalledPackageSet()
        self.state = ChannelState.UNINITIALIZED
        self.last_error: str | None = None
        self.requests_sent: Counter[str] = Counter()
        self.stale_replies = 0
        self.sessions: deque[ExecutionSession] = deque(maxlen=self.config.session_history)
        self._pending: dict[str, ExecutionSession] = {}
        self._ids = itertools.count(1)
        self._transport_started = False
        self._init_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self.state == ChannelState.READY

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, timeout: float | None = None) -> None:
        """
        Boot (or re-boot) the runtime.

        Raises:
            ChannelStateError: If the channel is closed or busy
            RuntimeFaultError: If the runtime reports an init error
            ExecutionTimeoutError: If the runtime does not answer in time
        """
        if self.state == ChannelState.CLOSED:
            raise ChannelStateError("Execution channel is closed")
        if self.state in (ChannelState.BUSY, ChannelState.INITIALIZING):
            raise ChannelStateError(f"Execution channel unavailable: channel is {self.state.value}")

        self.state = ChannelState.INITIALIZING
        try:
            if not self._transport_started:
                await self.transport.start(self._on_message, self._on_close)
                self._transport_started = True
            reply = await self._request(
                RequestKind.INIT, {}, timeout if timeout is not None else self.config.init_timeout
            )
        except OSError as e:
            if isinstance(e, TimeoutError):
                self._fail(str(e))
                raise
            self._fail(f"Failed to start runtime: {e}")
            raise RuntimeFaultError(f"Failed to start runtime: {e}") from e
        except BaseException as e:
            self._fail(str(e) or type(e).__name__)
            raise

        if reply.get("type") != "ready":
            error = reply.get("error") or f"unexpected reply {reply.get('type')!r}"
            self._fail(str(error))
            raise RuntimeFaultError(f"Runtime initialization failed: {error}")

        self.packages.reset()
        self.last_error = None
        self.state = ChannelState.READY
        logger.info("Execution runtime ready")

    async def ensure_ready(self) -> None:
        """Initialize the runtime if it has not been, or if it failed."""
        async with self._init_lock:
            if self.state in (ChannelState.UNINITIALIZED, ChannelState.ERROR):
                await self.initialize()

    async def close(self) -> None:
        self.state = ChannelState.CLOSED
        self._reject_pending("Execution channel closed")
        if self._transport_started:
            self._transport_started = False
            await self.transport.close()

    def _fail(self, error: str) -> None:
        self.state = ChannelState.ERROR
        self.last_error = error

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def run(
        self,
        code: str,
        files: Iterable[dict[str, str]] | None = None,
        entry_point: str | None = None,
        timeout: float | None = None,
    ) -> RunOutcome:
        """
        Execute code in the runtime.

        Args:
            code: Python source to execute
            files: [{path, content}] written into the runtime's directory first
            entry_point: Seeded file to execute instead of code, if present
            timeout: Seconds to wait (defaults to config.run_timeout)

        Raises:
            ChannelStateError: If the channel is busy or not ready
            ExecutionTimeoutError: If the runtime does not reply in time
        """
        payload: dict[str, Any] = {"code": code}
        if files:
            payload["files"] = [dict(f) for f in files]
        if entry_point:
            payload["entryPoint"] = entry_point

        async with self._exclusive():
            reply = await self._request(
                RequestKind.RUN, payload, timeout if timeout is not None else self.config.run_timeout
            )

        if reply.get("type") == "result":
            return RunOutcome(
                success=True,
                stdout=str(reply.get("stdout") or ""),
                stderr=str(reply.get("stderr") or ""),
                execution_time=reply.get("executionTime"),
            )
        if reply.get("type") == "error":
            return RunOutcome(success=False, error=str(reply.get("error") or "Unknown runtime error"))
        return RunOutcome(success=False, error=f"Unexpected reply type: {reply.get('type')!r}")

    async def install(self, package_name: str, timeout: float | None = None) -> InstallOutcome:
        """
        Install a package into the runtime, once.

        A package already recorded for the current runtime succeeds
        immediately without contacting the runtime.
        """
        name = (package_name or "").strip()
        if not name:
            raise ValidationError("Package name cannot be empty")
        if self.packages.contains(name):
            return InstallOutcome(
                package_name=name,
                success=True,
                already_installed=True,
                message=f"Package '{name}' is already installed",
            )

        async with self._exclusive():
            reply = await self._request(
                RequestKind.INSTALL,
                {"packageName": name},
                timeout if timeout is not None else self.config.install_timeout,
            )

        if reply.get("type") == "success":
            self.packages.add(name)
            return InstallOutcome(
                package_name=name,
                success=True,
                message=str(reply.get("message") or f"Successfully installed {name}"),
            )
        return InstallOutcome(
            package_name=name,
            success=False,
            error=str(reply.get("error") or f"Failed to install {name}"),
        )

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        """Hold the channel BUSY for one request; reject if it is not READY."""
        if self.state == ChannelState.BUSY:
            raise ChannelStateError(
                "Execution channel unavailable: another request is in progress"
            )
        if not self.is_ready:
            raise ChannelStateError(
                f"Execution channel unavailable: channel is {self.state.value}"
            )
        self.state = ChannelState.BUSY
        try:
            yield
        finally:
            if self.state == ChannelState.BUSY:
                self.state = ChannelState.READY

    async def _request(self, kind: RequestKind, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        request_id = f"{kind.value}-{next(self._ids)}"
        now = loop.time()
        session = ExecutionSession(
            request_id=request_id,
            kind=kind,
            started_at=now,
            timeout_at=now + timeout,
            future=loop.create_future(),
        )
        self._pending[request_id] = session
        self.requests_sent[kind.value] += 1
        logger.debug(f"Sending {kind.value} request {request_id} (timeout {timeout}s)")

        try:
            await self.transport.send({"type": kind.value, "requestId": request_id, **payload})
            return await asyncio.wait_for(session.future, timeout)
        except TimeoutError:
            session.status = SessionStatus.TIMED_OUT
            ms = int(timeout * 1000)
            if kind == RequestKind.RUN:
                message = f"Code execution timed out after {ms}ms"
            else:
                message = f"Runtime {kind.value} request timed out after {ms}ms"
            logger.warning(message)
            raise ExecutionTimeoutError(message) from None
        except asyncio.CancelledError:
            session.status = SessionStatus.CANCELLED
            logger.info(f"Request {request_id} cancelled by caller")
            raise
        except ConnectionError as e:
            session.status = SessionStatus.REJECTED
            self._fail(str(e))
            raise ChannelStateError(f"Execution channel unavailable: {e}") from e
        finally:
            self._pending.pop(request_id, None)
            session.finished_at = loop.time()
            self.sessions.append(session)

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _on_message(self, message: dict[str, Any]) -> None:
        request_id = message.get("requestId")
        session = self._pending.get(request_id) if isinstance(request_id, str) else None
        if session is None or session.future.done():
            self.stale_replies += 1
            logger.debug(
                f"Discarding stale reply {message.get('type')!r} (requestId={request_id!r})"
            )
            return
        session.status = (
            SessionStatus.REJECTED if message.get("type") == "error" else SessionStatus.RESOLVED
        )
        session.future.set_result(message)

    def _on_close(self) -> None:
        logger.warning("Execution worker closed the channel")
        self._transport_started = False
        if self.state != ChannelState.CLOSED:
            self._fail("Worker process exited")
        self._reject_pending("Execution channel unavailable: worker process exited")

    def _reject_pending(self, reason: str) -> None:
        for session in list(self._pending.values()):
            if not session.future.done():
                session.status = SessionStatus.REJECTED
                session.future.set_exception(ChannelStateError(reason))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def describe(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "installedPackages": self.packages.sorted(),
            "requestsSent": dict(self.requests_sent),
            "staleReplies": self.stale_replies,
            "pending": len(self._pending),
            "lastError": self.last_error,
        }
