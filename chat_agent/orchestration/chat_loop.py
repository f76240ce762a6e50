"""Top-level conversational loop streaming intermediate events to a sink."""
from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from chat_agent.core.events import (
    ChatEvent,
    EndOfStream,
    ErrorEvent,
    TextEvent,
    ToolCallEvent,
    ToolCallSummaryEvent,
    ToolResultEvent,
)
from chat_agent.core.tools import ToolRegistry
from chat_agent.services.llm import GenerationResult, ModelProvider, StepResult
from chat_agent.skills.catalog import SkillCatalog

LOGGER = logging.getLogger(__name__)

MAX_CHAT_STEPS = 10

BASE_SYSTEM_PROMPT = """You are a capable AI programming assistant.

## Environment
- Directories you may access: {allowed_paths}

Always use paths inside the allowed directories when calling filesystem tools.

## Tools
- Filesystem tools (readFile, listDirectory, searchCode, getFileInfo, writeFile) and any
  tools published by connected MCP servers, named <server>_<tool>
- Skill tools (listSkills, readSkill, createSkill)
- Agent tools (listAgents, callAgent, collaborativeTask) to hand work to specialist agents

## Plan mode
For complex tasks, work through these steps:
1. **Analyse the task**: understand what the user needs
2. **Read relevant skills**: if a skill applies, load its instructions with readSkill
   - Example: readSkill({{"name": "web-research"}})
   - The name argument is required
3. **Make a plan**: list the steps you are going to take as a TODO list
4. **Execute step by step**: follow the plan, calling the appropriate tools
5. **Report back**: tell the user what was done

Write a short explanation at every step so the user can follow your progress.
"""


def build_system_prompt(catalog: Optional[SkillCatalog] = None, allowed_paths: Sequence[str] = (".",)) -> str:
    prompt = BASE_SYSTEM_PROMPT.format(allowed_paths=", ".join(allowed_paths))
    if catalog is not None:
        prompt += catalog.system_prompt()
    return prompt


class EventSink(abc.ABC):
    """Destination for chat events; closed exactly once per turn."""

    @abc.abstractmethod
    async def emit(self, event: ChatEvent) -> None:
        ...

    @abc.abstractmethod
    async def close(self) -> None:
        ...


_CLOSED = object()


class QueueEventSink(EventSink):
    """Sink backed by an asyncio queue; iterate it to consume the events."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: ChatEvent) -> None:
        if self._closed:
            raise RuntimeError("Event sink is closed")
        await self._queue.put(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ChatEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class ChatLoop:
    """Run one conversational turn against the full tool registry."""

    def __init__(
        self,
        provider: ModelProvider,
        tools: ToolRegistry,
        system_prompt: str,
        max_steps: int = MAX_CHAT_STEPS,
    ) -> None:
        self._provider = provider
        self._tools = tools
        self._system_prompt = system_prompt
        self._max_steps = max_steps

    async def run(self, messages: Sequence[Dict[str, Any]], sink: EventSink) -> None:
        """Stream the turn into ``sink``.

        Whatever happens, the last event is ``EndOfStream`` and the sink is
        closed once.
        """
        last_flushed: Optional[str] = None

        async def flush_step(step: StepResult) -> None:
            nonlocal last_flushed
            if step.text:
                await sink.emit(TextEvent(step.text))
                last_flushed = step.text
            for call in step.tool_calls:
                LOGGER.info("Tool call %s", call.name)
                await sink.emit(ToolCallEvent(call.name, call.args))
            for result in step.tool_results:
                await sink.emit(ToolResultEvent(result.name, result.result))

        try:
            try:
                LOGGER.info("Chat turn started with %d message(s)", len(messages))
                generation = await self._provider.generate(
                    self._system_prompt,
                    messages,
                    self._tools,
                    self._max_steps,
                    on_step=flush_step,
                )
                if generation.text and generation.text != last_flushed:
                    await sink.emit(TextEvent(generation.text))
                if generation.tool_calls:
                    await sink.emit(ToolCallSummaryEvent(_summarize_calls(generation)))
                LOGGER.info(
                    "Chat turn finished after %d step(s) (%s)",
                    len(generation.steps),
                    generation.finish_reason,
                )
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Chat turn failed")
                await sink.emit(ErrorEvent(str(exc) or exc.__class__.__name__))
            finally:
                await sink.emit(EndOfStream())
        finally:
            await sink.close()


def _summarize_calls(generation: GenerationResult) -> List[Dict[str, Any]]:
    results = {result.tool_call_id: result.result for result in generation.tool_results}
    return [{"name": call.name, "result": results.get(call.id)} for call in generation.tool_calls]
