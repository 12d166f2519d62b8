"""
Tool Turn - run a sequence of tool calls on behalf of one agent turn.

A turn executes its calls one after another through the registry. A
failing call does not stop the sequence unless stop_on_failure is set.

The turn can be cancelled cooperatively through a CancelToken: no new
call starts once the token fires, and a call that is still waiting on the
runtime stops waiting (its request is not retracted from the runtime; the
channel just abandons the reply). The turn has a hard max_calls limit to
prevent runaway sequences.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pyworkbench.config import TurnConfig
from pyworkbench.events import EventType
from pyworkbench.tools import ToolRegistry, create_tool_response
from pyworkbench.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Execution cancelled by user"


class CancelToken:
    """A one-shot cancellation signal shared between a turn and its owner."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = CANCELLED_MESSAGE) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class CallRecord:
    """One executed call within a turn."""
    index: int
    tool_call: ToolCall
    result: ToolResult


@dataclass
class TurnResult:
    """Final result of running a turn."""
    records: list[CallRecord] = field(default_factory=list)
    cancelled: bool = False
    stopped_reason: str = "completed"
    error: str | None = None

    @property
    def results(self) -> list[ToolResult]:
        return [r.result for r in self.records]

    @property
    def success(self) -> bool:
        return not self.cancelled and all(r.result.success for r in self.records)

    def tool_messages(self) -> list[dict[str, Any]]:
        """Results formatted as OpenAI tool messages, in call order."""
        return [create_tool_response(r.tool_call.id, r.result) for r in self.records]


def to_tool_call(call: ToolCall | Mapping[str, Any], index: int = 0) -> ToolCall:
    """Accept a ToolCall, an OpenAI tool call, or {name, arguments}."""
    if isinstance(call, ToolCall):
        return call
    if "function" in call:
        tool_call = ToolCall.from_openai(dict(call))
    else:
        tool_call = ToolCall(
            id=str(call.get("id") or ""),
            name=str(call.get("name") or ""),
            arguments=dict(call.get("arguments") or call.get("parameters") or {}),
        )
    if not tool_call.id:
        tool_call.id = f"call_{index}"
    return tool_call


class ToolTurn:
    """Executes tool-call sequences against one registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        config: TurnConfig | None = None,
        stop_on_failure: bool = False,
    ) -> None:
        self.registry = registry
        self.config = config or TurnConfig()
        self.stop_on_failure = stop_on_failure

    async def run(
        self,
        calls: Iterable[ToolCall | Mapping[str, Any]],
        cancel: CancelToken | None = None,
    ) -> TurnResult:
        """Run the calls in order and collect their results."""
        turn = TurnResult()
        log = self.registry.event_log
        log.log_event(EventType.TURN_START)

        for index, raw in enumerate(calls):
            if cancel is not None and cancel.cancelled:
                self._mark_cancelled(turn, cancel)
                break
            if index >= self.config.max_calls:
                turn.stopped_reason = "max_calls"
                turn.error = f"Turn stopped after {self.config.max_calls} tool calls"
                logger.warning(turn.error)
                break

            tool_call = to_tool_call(raw, index)
            result = await self._execute(tool_call, cancel)
            turn.records.append(CallRecord(index=index, tool_call=tool_call, result=result))

            if result.metadata.get("cancelled"):
                self._mark_cancelled(turn, cancel)
                break
            if not result.success:
                logger.warning(f"Tool '{tool_call.name}' failed: {result.error}")
                if self.stop_on_failure:
                    turn.stopped_reason = "failure"
                    turn.error = result.error
                    break

        log.log_event(
            EventType.TURN_END,
            calls=len(turn.records),
            stopped_reason=turn.stopped_reason,
        )
        return turn

    async def _execute(self, tool_call: ToolCall, cancel: CancelToken | None) -> ToolResult:
        if cancel is None:
            return await self.registry.execute_call(tool_call)

        call_task = asyncio.ensure_future(self.registry.execute_call(tool_call))
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({call_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if call_task.done():
            return call_task.result()

        call_task.cancel()
        await asyncio.gather(call_task, return_exceptions=True)
        return ToolResult.fail(
            cancel.reason or CANCELLED_MESSAGE,
            errorType="cancelled",
            cancelled=True,
            toolName=tool_call.name,
            toolCallId=tool_call.id,
        )

    def _mark_cancelled(self, turn: TurnResult, cancel: CancelToken | None) -> None:
        turn.cancelled = True
        turn.stopped_reason = "cancelled"
        turn.error = (cancel.reason if cancel is not None else None) or CANCELLED_MESSAGE
        self.registry.event_log.log_event(EventType.TURN_CANCELLED, reason=turn.error)
        logger.info(f"Turn cancelled after {len(turn.records)} tool calls")


async def execute_tool_sequence(
    registry: ToolRegistry,
    calls: Iterable[ToolCall | Mapping[str, Any]],
) -> list[ToolResult]:
    """Run calls in order, continuing past failures, and return every result."""
    turn = await ToolTurn(registry).run(calls)
    return turn.results
