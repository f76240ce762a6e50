"""Streaming chat endpoint."""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Set

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from chat_agent.core.messages import ChatMessage, normalize_messages
from chat_agent.orchestration.chat_loop import ChatLoop, QueueEventSink
from chat_agent.runtime import get_chat_loop

router = APIRouter(prefix="/api/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Turns keep running after a client disconnects; hold a reference until they finish.
_RUNNING_TURNS: Set[asyncio.Task] = set()


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., description="Conversation so far, oldest first")


@router.post("")
async def chat(request: ChatRequest, loop: ChatLoop = Depends(get_chat_loop)) -> StreamingResponse:
    """Run one conversational turn and stream its events as server-sent events."""
    messages = normalize_messages(request.messages)

    async def stream() -> AsyncIterator[str]:
        sink = QueueEventSink()
        turn = asyncio.create_task(loop.run(messages, sink))
        _RUNNING_TURNS.add(turn)
        turn.add_done_callback(_RUNNING_TURNS.discard)

        async for event in sink:
            yield event.to_sse()
        await turn

    return StreamingResponse(stream(), media_type="text/event-stream", headers=SSE_HEADERS)
