"""Tests for event ordering and stream termination in the chat loop."""
from __future__ import annotations

from typing import Any, Dict

import pytest

from chat_agent.core.events import (
    END_OF_STREAM_FRAME,
    ChatEvent,
    EndOfStream,
    ErrorEvent,
    TextEvent,
    ToolCallEvent,
    ToolCallSummaryEvent,
    ToolResultEvent,
)
from chat_agent.core.tools import FilesystemTool, ToolRegistry
from chat_agent.orchestration.chat_loop import MAX_CHAT_STEPS, ChatLoop, QueueEventSink
from chat_agent.services.fallback_tools import fallback_filesystem_tools
from chat_agent.services.llm import (
    GenerationResult,
    ModelProvider,
    ModelTurn,
    StepResult,
    ToolCall,
    ToolResult,
)
from chat_agent.services.mcp import MCPClientManager
from conftest import RecordingSink, ScriptedProvider, text_turn, tool_turn

MESSAGES = [{"role": "user", "content": "hello"}]


class ClockTool(FilesystemTool):
    def __init__(self) -> None:
        super().__init__("clock", "Current time")

    async def run(self, args: Dict[str, Any]) -> Any:
        return {"success": True, "time": "12:00"}


class ClosingRemarkProvider(ModelProvider):
    """Reports a final text that no step emitted, as a provider that adds a closing remark would."""

    async def complete(self, system_prompt, messages, tools) -> ModelTurn:
        return ModelTurn(text="unused")

    async def generate(self, system_prompt, messages, tools, max_steps, on_step=None) -> GenerationResult:
        call = ToolCall(id="t1", name="clock", args={})
        result = ToolResult(tool_call_id="t1", name="clock", args={}, result={"success": True})
        step = StepResult(text="Working on it", tool_calls=[call], tool_results=[result], finish_reason="tool-calls")
        if on_step is not None:
            await on_step(step)
        return GenerationResult(
            text="All done",
            tool_calls=[call],
            tool_results=[result],
            steps=[step],
            finish_reason="stop",
        )


def assert_terminated_once(sink: RecordingSink) -> None:
    markers = [event for event in sink.events if isinstance(event, EndOfStream)]
    assert len(markers) == 1
    assert isinstance(sink.events[-1], EndOfStream)
    assert sink.close_count == 1


@pytest.mark.anyio
async def test_step_events_are_emitted_in_order() -> None:
    provider = ScriptedProvider(
        [
            tool_turn(ToolCall(id="t1", name="clock", args={}), text="Checking the time"),
            text_turn("It is noon"),
        ]
    )
    sink = RecordingSink()

    await ChatLoop(provider, ToolRegistry([ClockTool()]), "system").run(MESSAGES, sink)

    assert [event.payload() for event in sink.events[:-1]] == [
        {"text": "Checking the time"},
        {"toolCall": {"name": "clock", "args": {}, "status": "calling"}},
        {"toolCall": {"name": "clock", "result": {"success": True, "time": "12:00"}, "status": "completed"}},
        {"text": "It is noon"},
        {"toolCalls": [{"name": "clock", "result": {"success": True, "time": "12:00"}}]},
    ]
    assert_terminated_once(sink)


@pytest.mark.anyio
async def test_plain_answer_has_no_summary() -> None:
    sink = RecordingSink()

    await ChatLoop(ScriptedProvider([text_turn("Hi there")]), ToolRegistry(), "system").run(MESSAGES, sink)

    assert [type(event) for event in sink.events] == [TextEvent, EndOfStream]
    assert sink.close_count == 1


@pytest.mark.anyio
async def test_provider_exception_still_terminates_the_stream() -> None:
    sink = RecordingSink()

    await ChatLoop(ScriptedProvider([RuntimeError("upstream 503")]), ToolRegistry(), "system").run(MESSAGES, sink)

    assert [type(event) for event in sink.events] == [ErrorEvent, EndOfStream]
    assert sink.events[0].payload() == {"error": "upstream 503"}
    assert_terminated_once(sink)


@pytest.mark.anyio
async def test_exception_after_a_step_still_terminates_the_stream() -> None:
    provider = ScriptedProvider(
        [tool_turn(ToolCall(id="t1", name="clock", args={})), RuntimeError("connection reset")]
    )
    sink = RecordingSink()

    await ChatLoop(provider, ToolRegistry([ClockTool()]), "system").run(MESSAGES, sink)

    assert [type(event) for event in sink.events] == [ToolCallEvent, ToolResultEvent, ErrorEvent, EndOfStream]
    assert_terminated_once(sink)


@pytest.mark.anyio
async def test_tool_exception_is_contained() -> None:
    class BrokenTool(FilesystemTool):
        async def run(self, args: Dict[str, Any]) -> Any:
            raise RuntimeError("tool crashed")

    provider = ScriptedProvider(
        [tool_turn(ToolCall(id="b1", name="broken", args={})), text_turn("The tool failed, sorry")]
    )
    sink = RecordingSink()

    await ChatLoop(provider, ToolRegistry([BrokenTool("broken", "Breaks")]), "system").run(MESSAGES, sink)

    results = [event for event in sink.events if isinstance(event, ToolResultEvent)]
    assert results[0].result == {"success": False, "error": "tool crashed"}
    assert not any(isinstance(event, ErrorEvent) for event in sink.events)
    assert_terminated_once(sink)


@pytest.mark.anyio
async def test_disconnected_filesystem_server_does_not_break_the_turn() -> None:
    manager = MCPClientManager([])
    await manager.initialize()
    provider = ScriptedProvider(
        [
            tool_turn(ToolCall(id="r1", name="readFile", args={"path": "notes.txt"})),
            text_turn("I could not read the file"),
        ]
    )
    sink = RecordingSink()

    await ChatLoop(provider, fallback_filesystem_tools(manager), "system").run(MESSAGES, sink)

    [summary] = [event for event in sink.events if isinstance(event, ToolCallSummaryEvent)]
    assert summary.calls[0]["name"] == "readFile"
    assert summary.calls[0]["result"]["success"] is False
    assert_terminated_once(sink)


@pytest.mark.anyio
async def test_unknown_tool_is_reported_to_the_model() -> None:
    provider = ScriptedProvider([tool_turn(ToolCall(id="x", name="nope", args={})), text_turn("ok")])
    sink = RecordingSink()

    await ChatLoop(provider, ToolRegistry([ClockTool()]), "system").run(MESSAGES, sink)

    [result] = [event for event in sink.events if isinstance(event, ToolResultEvent)]
    assert result.result == {"success": False, "error": "Unknown tool: nope", "availableTools": ["clock"]}


@pytest.mark.anyio
async def test_chat_loop_stops_at_its_step_budget() -> None:
    provider = ScriptedProvider([tool_turn(ToolCall(id="t", name="clock", args={}))], repeat=True)
    sink = RecordingSink()

    await ChatLoop(provider, ToolRegistry([ClockTool()]), "system").run(MESSAGES, sink)

    assert len(provider.calls) == MAX_CHAT_STEPS == 10
    [summary] = [event for event in sink.events if isinstance(event, ToolCallSummaryEvent)]
    assert len(summary.calls) == 10
    assert_terminated_once(sink)


@pytest.mark.anyio
async def test_tool_results_are_fed_back_to_the_model() -> None:
    provider = ScriptedProvider([tool_turn(ToolCall(id="t1", name="clock", args={})), text_turn("noon")])

    await ChatLoop(provider, ToolRegistry([ClockTool()]), "system").run(MESSAGES, RecordingSink())

    history = provider.calls[1]["messages"]
    assert history[0] == MESSAGES[0]
    assert history[1]["role"] == "assistant"
    assert history[1]["tool_calls"][0]["id"] == "t1"
    assert history[2] == {"role": "tool", "tool_call_id": "t1", "content": '{"success": true, "time": "12:00"}'}


@pytest.mark.anyio
async def test_queue_sink_yields_events_until_closed() -> None:
    sink = QueueEventSink()

    await ChatLoop(ScriptedProvider([text_turn("streamed")]), ToolRegistry(), "system").run(MESSAGES, sink)
    frames = [event.to_sse() async for event in sink]

    assert frames == ['data: {"text": "streamed"}\n\n', END_OF_STREAM_FRAME]
    assert sink.closed
    await sink.close()


@pytest.mark.anyio
async def test_final_text_not_seen_in_any_step_is_emitted_once() -> None:
    sink = RecordingSink()

    await ChatLoop(ClosingRemarkProvider(), ToolRegistry([ClockTool()]), "system").run(MESSAGES, sink)

    assert [event.payload() for event in sink.events[:-1]] == [
        {"text": "Working on it"},
        {"toolCall": {"name": "clock", "args": {}, "status": "calling"}},
        {"toolCall": {"name": "clock", "result": {"success": True}, "status": "completed"}},
        {"text": "All done"},
        {"toolCalls": [{"name": "clock", "result": {"success": True}}]},
    ]
    assert_terminated_once(sink)


def test_event_base_class_cannot_be_rendered_directly() -> None:
    with pytest.raises(TypeError):
        ChatEvent()
