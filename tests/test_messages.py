"""Tests for flattening structured client messages."""
from __future__ import annotations

from chat_agent.core.messages import MAX_RESULT_CHARS, ChatMessage, normalize_messages


def test_plain_messages_pass_through() -> None:
    messages = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="hello")]

    assert normalize_messages(messages) == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


def test_structured_blocks_are_flattened() -> None:
    message = ChatMessage.model_validate(
        {
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Let me look."},
                {"type": "tool-call", "toolCallId": "1", "toolName": "readFile", "args": {"path": "a.txt"}},
                {"type": "tool-result", "toolCallId": "1", "toolName": "readFile", "result": "contents"},
            ],
        }
    )

    [normalized] = normalize_messages([message])

    assert normalized["role"] == "assistant"
    assert normalized["content"] == (
        "Let me look.\n\n"
        '[Tool call: readFile]\nArguments: {\n  "path": "a.txt"\n}\n\n'
        "[Tool result: readFile]\ncontents"
    )


def test_tool_role_is_replayed_as_assistant() -> None:
    message = ChatMessage(role="tool", content="done")

    assert normalize_messages([message]) == [{"role": "assistant", "content": "done"}]


def test_large_results_are_truncated() -> None:
    message = ChatMessage.model_validate(
        {
            "role": "assistant",
            "content": [{"type": "tool-result", "toolName": "listDirectory", "result": {"entries": ["x" * 5000]}}],
        }
    )

    [normalized] = normalize_messages([message])

    assert normalized["content"].endswith("...(result truncated)")
    assert len(normalized["content"]) < MAX_RESULT_CHARS + 100
