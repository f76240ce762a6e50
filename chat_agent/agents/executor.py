"""Runs a single specialist persona against a single task."""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from chat_agent.agents.personas import AGENT_PERSONAS
from chat_agent.core.models import AgentPersona, AgentResult, ToolCallRecord
from chat_agent.core.tools import ToolRegistry
from chat_agent.services.llm import GenerationResult, ModelProvider

LOGGER = logging.getLogger(__name__)

# Specialists are expected to converge quickly.
SPECIALIST_MAX_STEPS = 3


class AgentExecutor:
    """Execute persona tasks through the model provider."""

    def __init__(
        self,
        provider: ModelProvider,
        personas: Mapping[str, AgentPersona] = AGENT_PERSONAS,
        tools: Optional[ToolRegistry] = None,
        max_steps: int = SPECIALIST_MAX_STEPS,
    ) -> None:
        self._provider = provider
        self._personas = personas
        self._tools = tools or ToolRegistry()
        self._max_steps = max_steps

    @property
    def personas(self) -> Mapping[str, AgentPersona]:
        return self._personas

    def set_tools(self, tools: ToolRegistry) -> None:
        """Set the external tools made available to every persona."""
        self._tools = tools

    async def execute_agent(
        self,
        agent_name: str,
        task: str,
        context: Optional[str] = None,
        tools: Optional[ToolRegistry] = None,
    ) -> AgentResult:
        """Run ``agent_name`` on ``task``; failures come back as ``success=False``."""
        persona = self._personas.get(agent_name)
        if persona is None:
            return AgentResult(
                agent_name=agent_name,
                success=False,
                result="",
                error=f"Agent not found: {agent_name}",
            )

        content = f"Task: {task}\n\nContext:\n{context}" if context else task
        external = tools if tools is not None else self._tools
        registry = ToolRegistry.merged(persona.tools, external)

        LOGGER.info("Agent %s started: %s", agent_name, task[:100])
        try:
            generation = await self._provider.generate(
                persona.system_prompt,
                [{"role": "user", "content": content}],
                registry,
                self._max_steps,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Agent %s failed: %s", agent_name, exc)
            return AgentResult(
                agent_name=agent_name,
                success=False,
                result="",
                error=str(exc) or exc.__class__.__name__,
            )

        LOGGER.info("Agent %s finished after %d step(s)", agent_name, len(generation.steps))
        return AgentResult(
            agent_name=agent_name,
            success=True,
            result=generation.text,
            tool_calls=_tool_call_records(generation),
        )


def _tool_call_records(generation: GenerationResult) -> List[ToolCallRecord]:
    results: Dict[str, object] = {
        result.tool_call_id: result.result for result in generation.tool_results
    }
    return [
        ToolCallRecord(name=call.name, args=call.args, result=results.get(call.id))
        for call in generation.tool_calls
    ]
