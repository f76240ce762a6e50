"""Orchestrator that plans a request and delegates sub-tasks to specialists."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from chat_agent.agents.executor import AgentExecutor
from chat_agent.agents.personas import AGENT_PERSONAS, describe_personas
from chat_agent.core.models import AgentPersona, AgentResult, CollaborationTask, TaskStatus
from chat_agent.core.schema import ArraySchema, ObjectSchema, SchemaValidationError, StringSchema
from chat_agent.core.tools import DelegationTool, ToolRegistry
from chat_agent.services.llm import GenerationResult, ModelProvider

LOGGER = logging.getLogger(__name__)

PLANNING_MAX_STEPS = 5
DELEGATE_TOOL = "delegateToAgent"
SUMMARY_HEADING = "## Collaboration Results\n\n"

PLANNING_PROMPT = """You are a task orchestrator. Your responsibilities are:
1. Analyse the user's request
2. Decide which specialist agents should take part
3. Break the work down and assign each piece to a suitable agent
4. Aggregate the agents' results

Available specialist agents:
{agents}

Use the delegateToAgent tool to assign tasks, then use aggregateResults to summarise the results."""


@dataclass(slots=True)
class Delegation:
    """One ``delegateToAgent`` request made during planning."""

    agent_name: str
    task: str
    context: Optional[str] = None


@dataclass(slots=True)
class CollaborationOutcome:
    plan: List[CollaborationTask] = field(default_factory=list)
    results: List[AgentResult] = field(default_factory=list)
    summary: str = SUMMARY_HEADING


class DelegateToAgentTool(DelegationTool):
    """Records the planner's intent; the actual work happens after planning."""

    def __init__(self, personas: Mapping[str, AgentPersona]) -> None:
        super().__init__(
            DELEGATE_TOOL,
            "Assign a task to a specialist agent",
            ObjectSchema(
                properties={
                    "agentName": StringSchema("Name of the agent to assign the task to", enum=tuple(personas)),
                    "task": StringSchema("Description of the task to perform"),
                    "context": StringSchema("Context relevant to the task"),
                },
                required=("agentName", "task"),
            ),
        )
        self._personas = personas

    async def run(self, args: Dict[str, Any]) -> Any:
        agent_name = args["agentName"]
        persona = self._personas.get(agent_name)
        return {
            "delegated": True,
            "agentName": agent_name,
            "task": args["task"],
            "context": args.get("context"),
            "message": f"Task assigned to {persona.display_name if persona else agent_name}",
        }


class AggregateResultsTool(DelegationTool):
    def __init__(self) -> None:
        super().__init__(
            "aggregateResults",
            "Aggregate the results of several agents",
            ObjectSchema(
                properties={
                    "results": ArraySchema(
                        items=ObjectSchema(
                            properties={"agentName": StringSchema(), "result": StringSchema()},
                            required=("agentName", "result"),
                            title="AgentOutput",
                        ),
                        description="Result produced by each agent",
                    ),
                },
                required=("results",),
            ),
        )

    async def run(self, args: Dict[str, Any]) -> Any:
        results = args["results"]
        return {
            "aggregated": True,
            "summary": "\n".join(
                f"[{item['agentName']}]: {item['result'][:100]}..." for item in results
            ),
            "totalAgents": len(results),
        }


class GetAvailableAgentsTool(DelegationTool):
    def __init__(self, personas: Mapping[str, AgentPersona]) -> None:
        super().__init__("getAvailableAgents", "List every available specialist agent", ObjectSchema())
        self._personas = personas

    async def run(self, args: Dict[str, Any]) -> Any:
        return {
            "agents": [
                {"name": item["name"], "displayName": item["display_name"], "description": item["description"]}
                for item in describe_personas(self._personas)
            ]
        }


class Orchestrator:
    """Plan with the model, then run each delegation through the executor in order."""

    def __init__(
        self,
        provider: ModelProvider,
        executor: AgentExecutor,
        personas: Mapping[str, AgentPersona] = AGENT_PERSONAS,
        max_steps: int = PLANNING_MAX_STEPS,
    ) -> None:
        self._provider = provider
        self._executor = executor
        self._personas = personas
        self._max_steps = max_steps
        self._delegate_tool = DelegateToAgentTool(personas)

    @property
    def personas(self) -> Mapping[str, AgentPersona]:
        return self._personas

    def planning_prompt(self) -> str:
        agents = "\n".join(
            f"- {persona.display_name} ({persona.name}): {persona.description}"
            for persona in self._personas.values()
        )
        return PLANNING_PROMPT.format(agents=agents)

    def planning_tools(self, tools: Optional[ToolRegistry] = None) -> ToolRegistry:
        return ToolRegistry.merged(
            [self._delegate_tool, AggregateResultsTool(), GetAvailableAgentsTool(self._personas)],
            tools,
        )

    def extract_delegations(self, generation: GenerationResult) -> List[Delegation]:
        """Collect every delegation made during planning, in the order it was made."""
        delegations: List[Delegation] = []
        for call in generation.tool_calls:
            if call.name != DELEGATE_TOOL:
                continue
            try:
                args = self._delegate_tool.schema.validate(call.args)
            except SchemaValidationError as exc:
                LOGGER.info("Skipping malformed delegation %s: %s", call.id, exc)
                continue
            delegations.append(
                Delegation(agent_name=args["agentName"], task=args["task"], context=args.get("context"))
            )
        return delegations

    async def orchestrate(self, user_request: str, tools: Optional[ToolRegistry] = None) -> CollaborationOutcome:
        """Run the planning phase, then each delegated task sequentially.

        Exceptions from the planning call propagate; failures of individual
        specialists are recorded on their task and do not stop the others.
        """
        generation = await self._provider.generate(
            self.planning_prompt(),
            [{"role": "user", "content": user_request}],
            self.planning_tools(tools),
            self._max_steps,
        )
        delegations = self.extract_delegations(generation)
        LOGGER.info("Planning produced %d delegation(s)", len(delegations))

        plan = [
            CollaborationTask(
                id=f"task-{index}",
                description=delegation.task,
                assigned_agent=delegation.agent_name,
            )
            for index, delegation in enumerate(delegations, start=1)
        ]

        results: List[AgentResult] = []
        for task, delegation in zip(plan, delegations):
            task.transition(TaskStatus.IN_PROGRESS)
            result = await self._executor.execute_agent(
                delegation.agent_name,
                delegation.task,
                delegation.context,
                tools=tools,
            )
            task.finish(result)
            results.append(result)
            LOGGER.info("%s %s: %s", task.id, task.assigned_agent, task.status.value)

        return CollaborationOutcome(plan=plan, results=results, summary=self.summarize(results))

    def summarize(self, results: List[AgentResult]) -> str:
        sections = []
        for result in results:
            persona = self._personas.get(result.agent_name)
            heading = persona.display_name if persona else result.agent_name
            body = result.result if result.success else f"Error: {result.error}"
            sections.append(f"### {heading}\n{body}")
        return SUMMARY_HEADING + "\n\n".join(sections)
