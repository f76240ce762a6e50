"""Tests for startup composition of the tool registry."""
from __future__ import annotations

import pytest

from chat_agent import runtime
from chat_agent.agents.executor import AgentExecutor
from chat_agent.orchestration.orchestrator import Orchestrator
from chat_agent.orchestration.status import ActiveAgentBoard
from chat_agent.services.mcp import MCPClientManager
from chat_agent.skills.catalog import SkillCatalog
from conftest import ScriptedProvider, text_turn

FILESYSTEM_TOOLS = ["readFile", "listDirectory", "searchCode", "getFileInfo", "writeFile"]


class BrokenManager(MCPClientManager):
    async def initialize(self) -> None:
        raise RuntimeError("npx missing")


@pytest.fixture
def provider(monkeypatch, tmp_path) -> ScriptedProvider:
    provider = ScriptedProvider([])
    executor = AgentExecutor(provider)
    manager = BrokenManager([])
    monkeypatch.setattr(runtime, "get_mcp_manager", lambda: manager)
    monkeypatch.setattr(runtime, "get_agent_executor", lambda: executor)
    monkeypatch.setattr(runtime, "get_orchestrator", lambda: Orchestrator(provider, executor))
    monkeypatch.setattr(runtime, "get_skill_catalog", lambda: SkillCatalog(tmp_path))
    monkeypatch.setattr(runtime, "get_status_board", ActiveAgentBoard)
    monkeypatch.setattr(runtime, "_TOOL_REGISTRY", None)
    monkeypatch.setattr(runtime, "_MCP_TOOLS", None)
    return provider


def test_registry_is_unavailable_before_startup(provider: ScriptedProvider) -> None:
    with pytest.raises(RuntimeError):
        runtime.get_tool_registry()
    with pytest.raises(RuntimeError):
        runtime.get_mcp_tools()


@pytest.mark.anyio
async def test_failed_mcp_startup_falls_back_to_filesystem_tools(provider: ScriptedProvider) -> None:
    registry = await runtime.initialize_tools()

    assert runtime.get_tool_registry() is registry
    assert runtime.get_mcp_tools().names() == FILESYSTEM_TOOLS
    assert registry.names()[:5] == FILESYSTEM_TOOLS
    assert "collaborativeTask" in registry

    result = await registry["readFile"].execute({"path": "a.txt"})
    assert result["success"] is False


@pytest.mark.anyio
async def test_specialists_receive_the_fallback_tools(provider: ScriptedProvider) -> None:
    await runtime.initialize_tools()
    provider.script(text_turn("ok"))

    await runtime.get_agent_executor().execute_agent("code-analyzer", "Review")

    assert set(FILESYSTEM_TOOLS) <= set(provider.calls[0]["tools"])
