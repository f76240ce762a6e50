"""Events streamed to the client while a chat turn is running."""
from __future__ import annotations

import abc
import json
from dataclasses import dataclass
from typing import Any, Dict, List

END_OF_STREAM_FRAME = "data: [DONE]\n\n"


class ChatEvent(abc.ABC):
    """Base class; each event renders to a single server-sent-events frame."""

    @abc.abstractmethod
    def payload(self) -> Dict[str, Any]:
        """JSON body of the frame."""

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.payload(), ensure_ascii=False, default=str)}\n\n"


@dataclass(slots=True)
class TextEvent(ChatEvent):
    text: str

    def payload(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(slots=True)
class ToolCallEvent(ChatEvent):
    name: str
    args: Any

    def payload(self) -> Dict[str, Any]:
        return {"toolCall": {"name": self.name, "args": self.args, "status": "calling"}}


@dataclass(slots=True)
class ToolResultEvent(ChatEvent):
    name: str
    result: Any

    def payload(self) -> Dict[str, Any]:
        return {"toolCall": {"name": self.name, "result": self.result, "status": "completed"}}


@dataclass(slots=True)
class ToolCallSummaryEvent(ChatEvent):
    calls: List[Dict[str, Any]]

    def payload(self) -> Dict[str, Any]:
        return {"toolCalls": self.calls}


@dataclass(slots=True)
class ErrorEvent(ChatEvent):
    error: str

    def payload(self) -> Dict[str, Any]:
        return {"error": self.error}


@dataclass(slots=True)
class EndOfStream(ChatEvent):
    """Terminal marker; always the last event of a turn."""

    def payload(self) -> Dict[str, Any]:
        return {}

    def to_sse(self) -> str:
        return END_OF_STREAM_FRAME
