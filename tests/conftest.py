"""Shared fixtures: a scripted model provider and in-memory MCP connections."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from chat_agent.core.events import ChatEvent
from chat_agent.core.tools import ToolRegistry
from chat_agent.orchestration.chat_loop import EventSink
from chat_agent.services.llm import ModelProvider, ModelTurn, ToolCall


class ScriptedProvider(ModelProvider):
    """Replays a fixed list of turns; exceptions in the script are raised.

    With ``repeat=True`` the last turn is replayed forever, which is how the
    step-ceiling tests model a provider that never stops calling tools.
    """

    def __init__(self, turns: Sequence[Union[ModelTurn, Exception]], repeat: bool = False) -> None:
        self._turns = list(turns)
        self._repeat = repeat
        self.calls: List[Dict[str, Any]] = []

    def script(self, *turns: Union[ModelTurn, Exception]) -> None:
        self._turns = list(turns)

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[Dict[str, Any]],
        tools: ToolRegistry,
    ) -> ModelTurn:
        self.calls.append(
            {"system_prompt": system_prompt, "messages": list(messages), "tools": tools.names()}
        )
        index = len(self.calls) - 1
        if index < len(self._turns):
            turn = self._turns[index]
        elif self._repeat and self._turns:
            turn = self._turns[-1]
        else:
            turn = ModelTurn(text="")

        if isinstance(turn, Exception):
            raise turn
        if self._repeat:
            # Fresh call ids per step so results can be matched.
            return ModelTurn(
                text=turn.text,
                tool_calls=[
                    ToolCall(id=f"{call.id}-{index}", name=call.name, args=call.args)
                    for call in turn.tool_calls
                ],
                finish_reason=turn.finish_reason,
            )
        return turn


class RecordingSink(EventSink):
    def __init__(self) -> None:
        self.events: List[ChatEvent] = []
        self.close_count = 0

    async def emit(self, event: ChatEvent) -> None:
        self.events.append(event)

    async def close(self) -> None:
        self.close_count += 1


class FakeConnection:
    """Stands in for ``MCPConnection`` without spawning a subprocess."""

    def __init__(self, config: Any, tools: Sequence[Any] = (), fail: Optional[Exception] = None) -> None:
        self.config = config
        self._tools = list(tools)
        self._fail = fail
        self.calls: List[Any] = []
        self.closed = False

    async def start(self) -> None:
        if self._fail is not None:
            raise self._fail

    async def list_tools(self) -> List[Any]:
        return list(self._tools)

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((tool_name, arguments))
        return {"success": True, "content": f"{self.config.name}:{tool_name}"}

    async def close(self) -> None:
        self.closed = True


def remote_tool(name: str, description: str = "", input_schema: Optional[Dict[str, Any]] = None) -> Any:
    return SimpleNamespace(name=name, description=description, inputSchema=input_schema)


def tool_turn(*calls: ToolCall, text: str = "") -> ModelTurn:
    return ModelTurn(text=text, tool_calls=list(calls), finish_reason="tool-calls")


def text_turn(text: str) -> ModelTurn:
    return ModelTurn(text=text, finish_reason="stop")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"

