"""HTTP API exposing tools, agents, collaboration, MCP status and skills."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from chat_agent.agents.executor import AgentExecutor
from chat_agent.agents.personas import describe_personas
from chat_agent.agents.tools import ORCHESTRATOR_NAME
from chat_agent.core.models import ActiveAgentStatus, AgentResult, CollaborationTask
from chat_agent.core.tools import ToolKind, ToolRegistry
from chat_agent.orchestration.orchestrator import Orchestrator
from chat_agent.orchestration.status import ActiveAgentBoard
from chat_agent.runtime import (
    get_agent_executor,
    get_mcp_manager,
    get_mcp_tools,
    get_orchestrator,
    get_skill_catalog,
    get_status_board,
    get_tool_registry,
)
from chat_agent.services.mcp import MCPClientManager
from chat_agent.skills.catalog import SkillCatalog
from chat_agent.skills.loader import SkillMetadata

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["agents"])


class ToolInfo(BaseModel):
    name: str
    description: str


class ToolsResponse(BaseModel):
    mcp_tools: List[str]
    skill_tools: List[str]
    agent_tools: List[str]
    all_tools: List[ToolInfo]
    mcp_status: Dict[str, str]


class PersonaResponse(BaseModel):
    name: str
    display_name: str
    description: str


class ActiveAgentResponse(BaseModel):
    name: str
    status: str
    task: Optional[str] = None

    @classmethod
    def from_status(cls, current: Optional[ActiveAgentStatus]) -> Optional["ActiveAgentResponse"]:
        if current is None:
            return None
        return cls(name=current.name, status=current.status, task=current.task)


class AgentsResponse(BaseModel):
    agents: List[PersonaResponse]
    active_agent: Optional[ActiveAgentResponse] = None


class ActiveStatusResponse(BaseModel):
    active_agent: Optional[ActiveAgentResponse] = None


class AgentTaskRequest(BaseModel):
    task: str = Field(..., description="Task for the agent")
    context: Optional[str] = Field(None, description="Additional context, such as a code snippet")


class ToolCallResponse(BaseModel):
    name: str
    args: Any = None
    result: Any = None


class AgentResultResponse(BaseModel):
    agent_name: str
    success: bool
    result: str
    tool_calls: Optional[List[ToolCallResponse]] = None
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: AgentResult) -> "AgentResultResponse":
        return cls(
            agent_name=result.agent_name,
            success=result.success,
            result=result.result,
            tool_calls=[
                ToolCallResponse(name=call.name, args=call.args, result=call.result)
                for call in result.tool_calls
            ]
            if result.tool_calls is not None
            else None,
            error=result.error,
        )


class CollaborateRequest(BaseModel):
    task: str = Field(..., min_length=1, description="Complex task to split across agents")


class TaskResponse(BaseModel):
    id: str
    description: str
    assigned_agent: str
    status: str
    result: Optional[AgentResultResponse] = None

    @classmethod
    def from_task(cls, task: CollaborationTask) -> "TaskResponse":
        return cls(
            id=task.id,
            description=task.description,
            assigned_agent=task.assigned_agent,
            status=task.status.value,
            result=AgentResultResponse.from_result(task.result) if task.result else None,
        )


class CollaborationResponse(BaseModel):
    plan: List[TaskResponse]
    results: List[AgentResultResponse]
    summary: str


class MCPStatusResponse(BaseModel):
    initialized: bool
    status: Dict[str, str]


class SkillResponse(BaseModel):
    name: str
    description: str
    source: str
    path: str

    @classmethod
    def from_metadata(cls, skill: SkillMetadata) -> "SkillResponse":
        return cls(name=skill.name, description=skill.description, source=skill.source, path=str(skill.path))


class SkillsResponse(BaseModel):
    skills: List[SkillResponse]
    total: int


@router.get("/tools", response_model=ToolsResponse)
async def list_tools(
    registry: ToolRegistry = Depends(get_tool_registry),
    manager: MCPClientManager = Depends(get_mcp_manager),
) -> ToolsResponse:
    mcp_kinds = (ToolKind.FILESYSTEM, ToolKind.REMOTE)
    return ToolsResponse(
        mcp_tools=[tool.name for kind in mcp_kinds for tool in registry.by_kind(kind)],
        skill_tools=[tool.name for tool in registry.by_kind(ToolKind.SKILL)],
        agent_tools=[tool.name for tool in registry.by_kind(ToolKind.DELEGATION)],
        all_tools=[ToolInfo(**entry) for entry in registry.describe()],
        mcp_status=manager.get_status(),
    )


@router.get("/agents", response_model=AgentsResponse)
async def list_agents(
    executor: AgentExecutor = Depends(get_agent_executor),
    board: ActiveAgentBoard = Depends(get_status_board),
) -> AgentsResponse:
    return AgentsResponse(
        agents=[PersonaResponse(**entry) for entry in describe_personas(executor.personas)],
        active_agent=ActiveAgentResponse.from_status(board.current),
    )


@router.get("/agents/active", response_model=ActiveStatusResponse)
async def active_agent(board: ActiveAgentBoard = Depends(get_status_board)) -> ActiveStatusResponse:
    return ActiveStatusResponse(active_agent=ActiveAgentResponse.from_status(board.current))


@router.post("/agents/{agent_name}", response_model=AgentResultResponse)
async def call_agent(
    agent_name: str,
    request: AgentTaskRequest,
    executor: AgentExecutor = Depends(get_agent_executor),
    board: ActiveAgentBoard = Depends(get_status_board),
) -> AgentResultResponse:
    persona = executor.personas.get(agent_name)
    if persona is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Agent not found: {agent_name}")

    board.report(persona.display_name, "working", request.task)
    result = await executor.execute_agent(agent_name, request.task, request.context)
    board.report(persona.display_name, "completed" if result.success else "error")
    return AgentResultResponse.from_result(result)


@router.post("/collaborate", response_model=CollaborationResponse)
async def collaborate(
    request: CollaborateRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    board: ActiveAgentBoard = Depends(get_status_board),
    tools: ToolRegistry = Depends(get_mcp_tools),
) -> CollaborationResponse:
    board.report(ORCHESTRATOR_NAME, "coordinating", request.task)
    try:
        outcome = await orchestrator.orchestrate(request.task, tools)
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Collaboration failed: %s", exc)
        board.report(ORCHESTRATOR_NAME, "error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Collaboration failed: {exc}",
        ) from exc

    board.report(ORCHESTRATOR_NAME, "completed")
    return CollaborationResponse(
        plan=[TaskResponse.from_task(task) for task in outcome.plan],
        results=[AgentResultResponse.from_result(result) for result in outcome.results],
        summary=outcome.summary,
    )


@router.get("/mcp/status", response_model=MCPStatusResponse)
async def mcp_status(manager: MCPClientManager = Depends(get_mcp_manager)) -> MCPStatusResponse:
    return MCPStatusResponse(initialized=manager.is_initialized(), status=manager.get_status())


@router.get("/skills", response_model=SkillsResponse)
async def list_skills(catalog: SkillCatalog = Depends(get_skill_catalog)) -> SkillsResponse:
    skills = catalog.list_skills()
    return SkillsResponse(skills=[SkillResponse.from_metadata(skill) for skill in skills], total=len(skills))


@router.post("/skills/reload", response_model=SkillsResponse)
async def reload_skills(catalog: SkillCatalog = Depends(get_skill_catalog)) -> SkillsResponse:
    """Drop the cached skill list and rescan the skill directories."""
    catalog.invalidate()
    skills = catalog.reload()
    return SkillsResponse(skills=[SkillResponse.from_metadata(skill) for skill in skills], total=len(skills))
