"""Tools that let the chat model hand work to specialist agents."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from chat_agent.agents.executor import AgentExecutor
from chat_agent.agents.personas import describe_personas, display_name
from chat_agent.core.models import AgentPersona
from chat_agent.core.schema import ObjectSchema, StringSchema
from chat_agent.core.tools import DelegationTool, ToolRegistry
from chat_agent.orchestration.orchestrator import Orchestrator
from chat_agent.orchestration.status import ActiveAgentBoard

ORCHESTRATOR_NAME = "Orchestrator"


class ListAgentsTool(DelegationTool):
    def __init__(self, personas: Mapping[str, AgentPersona]) -> None:
        super().__init__("listAgents", "List every available specialist AI agent", ObjectSchema())
        self._personas = personas

    async def run(self, args: Dict[str, Any]) -> Any:
        return {
            "agents": [
                {"name": item["name"], "displayName": item["display_name"], "description": item["description"]}
                for item in describe_personas(self._personas)
            ]
        }


class CallAgentTool(DelegationTool):
    def __init__(self, executor: AgentExecutor, board: ActiveAgentBoard) -> None:
        super().__init__(
            "callAgent",
            "Ask a specialist agent to carry out a specific task",
            ObjectSchema(
                properties={
                    "agentName": StringSchema("Name of the agent to call", enum=tuple(executor.personas)),
                    "task": StringSchema("The task to perform"),
                    "context": StringSchema("Task context, such as a code snippet"),
                },
                required=("agentName", "task"),
            ),
        )
        self._executor = executor
        self._board = board

    async def run(self, args: Dict[str, Any]) -> Any:
        agent_name = args["agentName"]
        label = display_name(agent_name, self._executor.personas)
        self._board.report(label, "working", args["task"])

        result = await self._executor.execute_agent(agent_name, args["task"], args.get("context"))
        self._board.report(label, "completed" if result.success else "error")
        return result.to_dict()


class CollaborativeTaskTool(DelegationTool):
    def __init__(
        self,
        orchestrator: Orchestrator,
        board: ActiveAgentBoard,
        agent_tools: Optional[ToolRegistry] = None,
    ) -> None:
        super().__init__(
            "collaborativeTask",
            "Start a multi-agent collaboration to complete a complex task",
            ObjectSchema(
                properties={"task": StringSchema("Description of the complex task to complete")},
                required=("task",),
            ),
        )
        self._orchestrator = orchestrator
        self._board = board
        self._agent_tools = agent_tools

    async def run(self, args: Dict[str, Any]) -> Any:
        task = args["task"]
        self._board.report(ORCHESTRATOR_NAME, "coordinating", task)
        try:
            outcome = await self._orchestrator.orchestrate(task, self._agent_tools)
        except Exception:
            self._board.report(ORCHESTRATOR_NAME, "error")
            raise

        self._board.report(ORCHESTRATOR_NAME, "completed")
        personas = self._orchestrator.personas
        return {
            "success": True,
            "tasksExecuted": len(outcome.plan),
            "plan": [
                {
                    "agent": display_name(item.assigned_agent, personas),
                    "task": item.description,
                    "status": item.status.value,
                }
                for item in outcome.plan
            ],
            "summary": outcome.summary,
        }


def agent_tools(
    executor: AgentExecutor,
    orchestrator: Orchestrator,
    board: ActiveAgentBoard,
    tools_for_agents: Optional[ToolRegistry] = None,
) -> ToolRegistry:
    """Build ``listAgents``, ``callAgent`` and ``collaborativeTask``.

    ``tools_for_agents`` is handed to the orchestrator for each collaboration;
    specialists called directly use the executor's own external tools.
    """
    return ToolRegistry(
        [
            ListAgentsTool(executor.personas),
            CallAgentTool(executor, board),
            CollaborativeTaskTool(orchestrator, board, tools_for_agents),
        ]
    )
