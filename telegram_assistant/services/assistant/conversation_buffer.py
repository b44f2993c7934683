"""Conversation history primitives for the Telegram assistant.

Pure functions only: token estimation, transcript formatting and turn
assembly.  Nothing here touches storage or the network.

Formatting convention: every message renders as ``"<role>: <content>\\n"``.
Assistant replies are stored with their own trailing newline, so in a
transcript they are followed by a blank line.
"""

from __future__ import annotations

from typing import Iterable, Literal, TypedDict

Role = Literal["system", "user", "assistant"]

ROLES: frozenset[str] = frozenset({"system", "user", "assistant"})


class ChatMessage(TypedDict):
    role: str  # "system" | "user" | "assistant"
    content: str


def estimate_tokens(text: str) -> int:
    """Estimate token count using a simple chars/4 heuristic.

    Deterministic and monotonic in length; used only as a soft gate, never
    for billing.
    """
    return max(len(text) // 4, 1) if text else 0


def format_message_history(messages: Iterable[ChatMessage]) -> str:
    """Render messages as a ``role: content`` transcript (``""`` when empty)."""
    return "".join(f"{m['role']}: {m['content']}\n" for m in messages)


def without_system(messages: Iterable[ChatMessage]) -> list[ChatMessage]:
    """Drop ``system`` entries for display."""
    return [m for m in messages if m["role"] != "system"]


def user_message(text: str | None) -> ChatMessage:
    return ChatMessage(role="user", content=text or "")


def assistant_message(reply: str) -> ChatMessage:
    """Assistant entries are stored with exactly one extra trailing newline."""
    return ChatMessage(role="assistant", content=reply + "\n")


def append_turn(
    history: list[ChatMessage],
    user_msg: ChatMessage,
    assistant_msg: ChatMessage,
) -> list[ChatMessage]:
    """Return history with one user/assistant pair appended (does NOT mutate)."""
    return [*history, user_msg, assistant_msg]
