from __future__ import annotations

from typing import Any, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

# The chat-with-ai function only accepts these two roles.
_ROLES = {"user", "assistant"}


def _extract_text_from_parts(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return str(content)

    chunks: list[str] = []
    for p in content:
        if isinstance(p, str):
            chunks.append(p)
        elif isinstance(p, dict):
            if p.get("type") == "text" and isinstance(p.get("text"), str):
                chunks.append(p["text"])
            elif isinstance(p.get("content"), str):
                chunks.append(p["content"])
    return "\n".join([c for c in chunks if c])


def to_chat_messages(messages: Sequence[BaseMessage | dict[str, Any]]) -> list[dict[str, str]]:
    """
    Convert LangChain messages (or plain {"role", "content"} dicts) to the
    request envelope entries of the chat endpoint.

    Raises:
        TypeError: for message types the endpoint has no role for (system, tool...).
        ValueError: for dicts with an unknown role.
    """
    out: list[dict[str, str]] = []

    for m in messages:
        if isinstance(m, dict):
            role = m.get("role")
            if role not in _ROLES:
                raise ValueError(f"Unsupported chat role: {role!r}")
            out.append({"role": role, "content": _extract_text_from_parts(m.get("content", ""))})
            continue

        if isinstance(m, HumanMessage):
            role = "user"
        elif isinstance(m, AIMessage):
            role = "assistant"
        else:
            raise TypeError(f"Unsupported message type for classroom chat: {type(m).__name__}")

        out.append({"role": role, "content": _extract_text_from_parts(m.content)})

    return out


def accumulate(prev: str | None, delta: str) -> str:
    """Transcript fold: append one delta to the reply built so far."""
    return (prev or "") + delta


def upsert_assistant(messages: Sequence[BaseMessage], transcript: str) -> list[BaseMessage]:
    """
    Put the running transcript into the conversation.

    The trailing AIMessage is replaced by one carrying the new transcript; when
    the conversation does not end with an assistant turn yet, one is appended.
    """
    out = list(messages)
    if out and isinstance(out[-1], AIMessage):
        out[-1] = AIMessage(content=transcript)
    else:
        out.append(AIMessage(content=transcript))
    return out
