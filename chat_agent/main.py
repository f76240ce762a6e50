"""FastAPI entry-point for the chat agent backend."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI

from chat_agent.api.chat import router as chat_router
from chat_agent.api.routes import router as api_router
from chat_agent.config import config
from chat_agent.logging_utils import setup_logging
from chat_agent.runtime import get_mcp_manager, get_provider, initialize_tools, shutdown
from chat_agent.services.mcp import MCPClientManager

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    setup_logging(config.log_level)
    # Startup: connect MCP servers and build the tool registry
    registry = await initialize_tools()
    LOGGER.info("LLM: %s", get_provider().describe())
    LOGGER.info("Chat agent ready with %d tool(s)", len(registry))
    yield
    # Shutdown: close MCP connections
    await shutdown()


app = FastAPI(title="Chat Agent", lifespan=lifespan)
app.include_router(chat_router)
app.include_router(api_router)


@app.get("/api/health")
async def health(manager: MCPClientManager = Depends(get_mcp_manager)) -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "mcp_initialized": manager.is_initialized(),
    }


def run() -> None:
    uvicorn.run("chat_agent.main:app", host=config.host, port=config.port)


if __name__ == "__main__":
    run()
