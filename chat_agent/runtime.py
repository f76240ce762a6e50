"""Application runtime composition helpers."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from chat_agent.agents.executor import AgentExecutor
from chat_agent.agents.personas import AGENT_PERSONAS
from chat_agent.agents.tools import agent_tools
from chat_agent.config import config
from chat_agent.core.tools import ToolRegistry
from chat_agent.orchestration.chat_loop import ChatLoop, build_system_prompt
from chat_agent.orchestration.orchestrator import Orchestrator
from chat_agent.orchestration.status import ActiveAgentBoard
from chat_agent.services.fallback_tools import collect_mcp_tools, fallback_filesystem_tools
from chat_agent.services.llm import ModelProvider, OpenAIProvider
from chat_agent.services.mcp import MCPClientManager, load_server_configs
from chat_agent.skills.catalog import SkillCatalog
from chat_agent.skills.tools import skill_tools

LOGGER = logging.getLogger(__name__)

# Set by initialize_tools() on startup
_TOOL_REGISTRY: Optional[ToolRegistry] = None
_MCP_TOOLS: Optional[ToolRegistry] = None


@lru_cache
def get_provider() -> ModelProvider:
    return OpenAIProvider(config.llm, provider_name=config.llm_provider)


@lru_cache
def get_mcp_manager() -> MCPClientManager:
    return MCPClientManager(load_server_configs(config))


@lru_cache
def get_skill_catalog() -> SkillCatalog:
    return SkillCatalog(config.user_skills_dir, config.project_skills_dir)


@lru_cache
def get_status_board() -> ActiveAgentBoard:
    return ActiveAgentBoard()


@lru_cache
def get_agent_executor() -> AgentExecutor:
    return AgentExecutor(get_provider(), AGENT_PERSONAS)


@lru_cache
def get_orchestrator() -> Orchestrator:
    return Orchestrator(get_provider(), get_agent_executor(), AGENT_PERSONAS)


async def initialize_tools() -> ToolRegistry:
    """Connect MCP servers and build the registry offered to the chat model."""
    global _TOOL_REGISTRY, _MCP_TOOLS

    manager = get_mcp_manager()
    try:
        await manager.initialize()
        mcp_tools = collect_mcp_tools(manager)
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("MCP initialization failed, continuing with fallback tools: %s", exc)
        mcp_tools = fallback_filesystem_tools(manager)

    executor = get_agent_executor()
    executor.set_tools(mcp_tools)

    registry = ToolRegistry.merged(
        mcp_tools,
        skill_tools(get_skill_catalog()),
        agent_tools(executor, get_orchestrator(), get_status_board(), mcp_tools),
    )
    _MCP_TOOLS = mcp_tools
    _TOOL_REGISTRY = registry
    LOGGER.info("Tool registry ready: %s", ", ".join(registry.names()))
    return registry


def get_tool_registry() -> ToolRegistry:
    """Get the merged tool registry built at startup."""
    if _TOOL_REGISTRY is None:
        raise RuntimeError("Tools not initialized. Call initialize_tools() first.")
    return _TOOL_REGISTRY


def get_mcp_tools() -> ToolRegistry:
    if _MCP_TOOLS is None:
        raise RuntimeError("Tools not initialized. Call initialize_tools() first.")
    return _MCP_TOOLS


def get_chat_loop() -> ChatLoop:
    """Chat loop over the current registry; the prompt reflects the skill cache at call time."""
    return ChatLoop(
        get_provider(),
        get_tool_registry(),
        build_system_prompt(get_skill_catalog(), config.mcp_allowed_paths),
    )


async def shutdown() -> None:
    global _TOOL_REGISTRY, _MCP_TOOLS

    await get_mcp_manager().close()
    _TOOL_REGISTRY = None
    _MCP_TOOLS = None
