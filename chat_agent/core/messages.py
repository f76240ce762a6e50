"""Normalisation of client chat messages into plain role/content pairs.

Clients may send assistant turns that mix text with tool-call and tool-result
blocks. The provider only needs readable history, so every structured block
is flattened into text and ``tool`` turns are replayed as assistant turns.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field

MAX_RESULT_CHARS = 2000


class ContentBlock(BaseModel):
    type: Literal["text", "tool-call", "tool-result"]
    text: Optional[str] = None
    tool_call_id: Optional[str] = Field(default=None, alias="toolCallId")
    tool_name: Optional[str] = Field(default=None, alias="toolName")
    args: Any = None
    result: Any = None

    model_config = {"populate_by_name": True}


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system", "tool"]
    content: Union[str, List[ContentBlock]]


def format_tool_call(tool_name: str, args: Any) -> str:
    rendered = json.dumps(args, indent=2, ensure_ascii=False, default=str) if args else "{}"
    return f"[Tool call: {tool_name}]\nArguments: {rendered}"


def format_tool_result(tool_name: str, result: Any) -> str:
    if isinstance(result, str):
        rendered = result
    elif isinstance(result, (dict, list)):
        rendered = json.dumps(result, indent=2, ensure_ascii=False, default=str)
        if len(rendered) > MAX_RESULT_CHARS:
            rendered = rendered[:MAX_RESULT_CHARS] + "\n...(result truncated)"
    else:
        rendered = str(result)
    return f"[Tool result: {tool_name}]\n{rendered}"


def flatten_content(content: Union[str, List[ContentBlock]]) -> str:
    if isinstance(content, str):
        return content

    parts: List[str] = []
    for block in content:
        if block.type == "text" and block.text:
            parts.append(block.text)
        elif block.type == "tool-call":
            parts.append(format_tool_call(block.tool_name or "unknown", block.args))
        elif block.type == "tool-result":
            parts.append(format_tool_result(block.tool_name or "unknown", block.result))
    return "\n\n".join(parts)


def normalize_message(message: ChatMessage) -> Dict[str, str]:
    role = "assistant" if message.role == "tool" else message.role
    return {"role": role, "content": flatten_content(message.content)}


def normalize_messages(messages: Iterable[ChatMessage]) -> List[Dict[str, str]]:
    return [normalize_message(message) for message in messages]
