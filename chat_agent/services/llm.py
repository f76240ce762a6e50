"""Model provider running bounded tool-calling loops over a chat completion API."""
from __future__ import annotations

import abc
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from openai import AsyncAzureOpenAI, AsyncOpenAI

from chat_agent.config import LLMConfig
from chat_agent.core.tools import ToolRegistry, failure

LOGGER = logging.getLogger(__name__)

_FINISH_REASONS = {
    "stop": "stop",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
    "length": "length",
    "content_filter": "content-filter",
}


class ProviderConfigurationError(RuntimeError):
    """Raised when the model provider is used without credentials."""


@dataclass(slots=True)
class ToolCall:
    id: str
    name: str
    args: Any


@dataclass(slots=True)
class ToolResult:
    tool_call_id: str
    name: str
    args: Any
    result: Any


@dataclass(slots=True)
class ModelTurn:
    """What the model produced for a single completion request."""

    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"


@dataclass(slots=True)
class StepResult:
    text: str
    tool_calls: List[ToolCall]
    tool_results: List[ToolResult]
    finish_reason: str


@dataclass(slots=True)
class GenerationResult:
    """Outcome of a full multi-step generation.

    ``text`` and ``finish_reason`` come from the final step; ``tool_calls``
    and ``tool_results`` cover every step in order.
    """

    text: str
    tool_calls: List[ToolCall]
    tool_results: List[ToolResult]
    steps: List[StepResult]
    finish_reason: str


StepCallback = Callable[[StepResult], Awaitable[None]]


class ModelProvider(abc.ABC):
    """Produces text and tool invocations; subclasses implement one completion."""

    def describe(self) -> Dict[str, Optional[str]]:
        return {"provider": self.__class__.__name__, "model": None, "base_url": None}

    @abc.abstractmethod
    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[Dict[str, Any]],
        tools: ToolRegistry,
    ) -> ModelTurn:
        """Run a single completion against the current history."""

    async def generate(
        self,
        system_prompt: str,
        messages: Sequence[Dict[str, Any]],
        tools: ToolRegistry,
        max_steps: int,
        on_step: Optional[StepCallback] = None,
    ) -> GenerationResult:
        """Alternate model completions and tool execution for at most ``max_steps`` rounds.

        The loop ends early when a completion requests no tools. When the
        budget runs out the last step's own finish reason is reported.
        """
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")

        history: List[Dict[str, Any]] = [dict(message) for message in messages]
        steps: List[StepResult] = []

        for step_number in range(1, max_steps + 1):
            turn = await self.complete(system_prompt, history, tools)
            results = [await self._execute_tool(call, tools) for call in turn.tool_calls]
            step = StepResult(
                text=turn.text,
                tool_calls=list(turn.tool_calls),
                tool_results=results,
                finish_reason=turn.finish_reason,
            )
            steps.append(step)
            LOGGER.debug(
                "Step %d/%d finished (%s): %d tool call(s)",
                step_number,
                max_steps,
                turn.finish_reason,
                len(turn.tool_calls),
            )

            if on_step is not None:
                await on_step(step)

            if not turn.tool_calls:
                break

            history.append(_assistant_message(turn))
            history.extend(_tool_message(result) for result in results)

        final = steps[-1]
        return GenerationResult(
            text=final.text,
            tool_calls=[call for step in steps for call in step.tool_calls],
            tool_results=[result for step in steps for result in step.tool_results],
            steps=steps,
            finish_reason=final.finish_reason,
        )

    @staticmethod
    async def _execute_tool(call: ToolCall, tools: ToolRegistry) -> ToolResult:
        tool = tools.get(call.name)
        if tool is None:
            result: Any = failure(f"Unknown tool: {call.name}", availableTools=tools.names())
        else:
            result = await tool.execute(call.args)
        return ToolResult(tool_call_id=call.id, name=call.name, args=call.args, result=result)


class OpenAIProvider(ModelProvider):
    """Provider for OpenAI-compatible chat completion endpoints (OpenAI, Qwen, Azure)."""

    def __init__(self, config: Optional[LLMConfig], provider_name: str = "openai") -> None:
        self._config = config
        self._provider_name = config.provider if config else provider_name
        self._client: Optional[Any] = None
        self._semaphore = asyncio.Semaphore(config.max_concurrent if config else 1)

    def describe(self) -> Dict[str, Optional[str]]:
        return {
            "provider": self._provider_name,
            "model": self._config.model if self._config else None,
            "base_url": self._config.base_url if self._config else None,
        }

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        """Acquire the shared client with concurrency control."""
        if self._config is None:
            raise ProviderConfigurationError(
                f"API key for LLM provider '{self._provider_name}' is not configured"
            )

        async with self._semaphore:
            # Lazy initialization on first use
            if self._client is None:
                self._client = self._create_client(self._config)
            yield self._client

    @staticmethod
    def _create_client(config: LLMConfig) -> Any:
        if config.provider == "azure":
            return AsyncAzureOpenAI(
                api_key=config.api_key,
                api_version=config.api_version,
                azure_endpoint=config.base_url,
            )
        return AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[Dict[str, Any]],
        tools: ToolRegistry,
    ) -> ModelTurn:
        async with self.acquire() as client:
            request: Dict[str, Any] = {
                "model": self._config.model,
                "messages": [{"role": "system", "content": system_prompt}, *messages],
            }
            if tools:
                request["tools"] = tools.to_openai_tools()
            response = await client.chat.completions.create(**request)

        choice = response.choices[0]
        message = choice.message
        tool_calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                args=_parse_arguments(call.function.arguments),
            )
            for call in message.tool_calls or []
        ]
        return ModelTurn(
            text=message.content or "",
            tool_calls=tool_calls,
            finish_reason=_FINISH_REASONS.get(choice.finish_reason, choice.finish_reason or "unknown"),
        )


def _parse_arguments(raw: Optional[str]) -> Any:
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        # Left as a string so the tool's schema rejects it with a readable message.
        return raw


def _assistant_message(turn: ModelTurn) -> Dict[str, Any]:
    return {
        "role": "assistant",
        "content": turn.text or None,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {
                    "name": call.name,
                    "arguments": json.dumps(call.args, ensure_ascii=False, default=str),
                },
            }
            for call in turn.tool_calls
        ],
    }


def _tool_message(result: ToolResult) -> Dict[str, Any]:
    content = result.result if isinstance(result.result, str) else json.dumps(
        result.result, ensure_ascii=False, default=str
    )
    return {"role": "tool", "tool_call_id": result.tool_call_id, "content": content}
