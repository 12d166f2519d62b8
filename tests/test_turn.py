"""
Tests for ToolTurn: ordered tool-call sequences with cancellation.
"""

import asyncio

import pytest

from pyworkbench.channel import ChannelState
from pyworkbench.config import TurnConfig
from pyworkbench.events import EventType
from pyworkbench.turn import CANCELLED_MESSAGE, CancelToken, ToolTurn, execute_tool_sequence, to_tool_call
from pyworkbench.types import ToolCall


class TestToToolCall:
    """Test call normalization."""

    def test_openai_format(self) -> None:
        call = to_tool_call({
            "id": "call_abc",
            "type": "function",
            "function": {"name": "read_file", "arguments": '{"path": "main.py"}'},
        })
        assert call == ToolCall(id="call_abc", name="read_file", arguments={"path": "main.py"})

    def test_plain_format_gets_an_id(self) -> None:
        call = to_tool_call({"name": "read_file", "parameters": {"path": "a"}}, index=3)
        assert call.id == "call_3"
        assert call.arguments == {"path": "a"}


class TestSequence:
    """Test sequential execution."""

    @pytest.mark.asyncio
    async def test_continues_past_failures(self, session) -> None:
        results = await execute_tool_sequence(session.registry, [
            {"name": "create_item", "arguments": {"path": "a.txt", "type": "file", "content": "A"}},
            {"name": "read_file", "arguments": {"path": "missing.txt"}},
            {"name": "read_file", "arguments": {"path": "a.txt"}},
        ])
        assert [r.success for r in results] == [True, False, True]
        assert results[2].data["content"] == "A"

    @pytest.mark.asyncio
    async def test_calls_see_earlier_mutations(self, session) -> None:
        """Each call runs against the tree left by the previous one."""
        turn = await ToolTurn(session.registry).run([
            {"name": "create_item", "arguments": {"path": "docs", "type": "folder"}},
            {"name": "write_file", "arguments": {"path": "docs/a.md", "content": "x"}},
            {"name": "move_item", "arguments": {"sourcePath": "docs", "targetPath": "src"}},
        ])
        assert turn.success
        assert turn.stopped_reason == "completed"
        assert session.tree_as_dicts()[1]["children"][-1]["name"] == "docs"

    @pytest.mark.asyncio
    async def test_stop_on_failure(self, session) -> None:
        turn = await ToolTurn(session.registry, stop_on_failure=True).run([
            {"name": "read_file", "arguments": {"path": "missing.txt"}},
            {"name": "read_file", "arguments": {"path": "main.py"}},
        ])
        assert len(turn.records) == 1
        assert turn.stopped_reason == "failure"
        assert turn.error == "File not found: missing.txt"
        assert not turn.success

    @pytest.mark.asyncio
    async def test_max_calls(self, session) -> None:
        calls = [{"name": "list_packages", "arguments": {}}] * 3
        turn = await ToolTurn(session.registry, TurnConfig(max_calls=2)).run(calls)
        assert len(turn.records) == 2
        assert turn.stopped_reason == "max_calls"

    @pytest.mark.asyncio
    async def test_tool_messages(self, session) -> None:
        turn = await ToolTurn(session.registry).run([
            ToolCall(id="call_1", name="read_file", arguments={"path": "main.py"}),
        ])
        messages = turn.tool_messages()
        assert messages[0]["role"] == "tool"
        assert messages[0]["tool_call_id"] == "call_1"
        assert "print('hello')" in messages[0]["content"]

    @pytest.mark.asyncio
    async def test_turn_events(self, session) -> None:
        await ToolTurn(session.registry).run([{"name": "list_packages", "arguments": {}}])
        log = session.registry.event_log
        assert len(log.get_events_of_type(EventType.TURN_START)) == 1
        assert len(log.get_events_of_type(EventType.TURN_END)) == 1


class TestCancellation:
    """Test cooperative cancellation of a turn."""

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, session) -> None:
        token = CancelToken()
        token.cancel()
        turn = await ToolTurn(session.registry).run(
            [{"name": "read_file", "arguments": {"path": "main.py"}}], token
        )
        assert turn.records == []
        assert turn.cancelled
        assert turn.error == CANCELLED_MESSAGE

    @pytest.mark.asyncio
    async def test_cancel_during_run(self, session, fake_transport) -> None:
        """Cancelling while waiting on the runtime returns a cancelled result."""
        fake_transport.handlers["run"] = lambda m: None
        token = CancelToken()
        task = asyncio.create_task(ToolTurn(session.registry).run([
            {"name": "execute_python", "arguments": {"code": "import time; time.sleep(60)"}},
            {"name": "read_file", "arguments": {"path": "main.py"}},
        ], token))

        await asyncio.sleep(0.05)
        assert session.channel.state == ChannelState.BUSY
        token.cancel()
        turn = await task

        assert turn.cancelled
        assert turn.stopped_reason == "cancelled"
        assert len(turn.records) == 1
        result = turn.records[0].result
        assert not result.success
        assert result.error == CANCELLED_MESSAGE
        assert result.metadata["errorType"] == "cancelled"
        assert session.channel.state == ChannelState.READY
        assert session.channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_cancel_token(self) -> None:
        token = CancelToken()
        assert not token.cancelled
        token.cancel("stop")
        token.cancel("again")
        assert token.reason == "stop"
        await asyncio.wait_for(token.wait(), 1.0)
