"""Bot command handlers, keyed by command name.

Each handler takes the same keyword arguments and replies on its own.
Anything not in ``COMMAND_HANDLERS`` is a conversation turn.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Awaitable, Callable

from .conversation_buffer import estimate_tokens, format_message_history, without_system
from .runtime_deps import BotRuntimeDeps
from .turn_runtime import GENERIC_ERROR_TEXT, NO_USER_TEXT, report_failure, safe_reply

CommandHandler = Callable[..., Awaitable[str]]

WELCOME_TEXT = "Welcome! I will be your personal AI Assistant."
CLEARED_TEXT = "Your dialogue has been cleared"
EMPTY_HISTORY_TEXT = "History is empty"

# Sent to setMyCommands; ping stays unlisted.
BOT_COMMANDS: list[dict[str, str]] = [
    {"command": "start", "description": "Start the bot"},
    {"command": "clear", "description": "Clear the dialogue history."},
    {"command": "history", "description": "Show the dialogue history."},
    {"command": "credits", "description": "Show the amount of credits used."},
]

# "/cmd", "/cmd args", "/cmd@BotName args"
_COMMAND_PATTERN = re.compile(r"^/([A-Za-z0-9_]{1,32})(?:@([A-Za-z0-9_]+))?(?:\s+(.*))?$", re.DOTALL)


def parse_command(text: str | None, *, bot_username: str | None = None) -> tuple[str, str] | None:
    """Split ``/cmd@Bot args``.  A suffix naming another bot is not a command.

    Without ``bot_username`` any ``@suffix`` is accepted.
    """
    m = _COMMAND_PATTERN.match((text or "").strip())
    if not m:
        return None
    target = m.group(2)
    if target and bot_username and target.lower() != bot_username.lstrip("@").lower():
        return None
    return m.group(1).lower(), (m.group(3) or "").strip()


def _user_key(user_id: Any) -> str:
    return str(user_id).strip() if user_id is not None else ""


def credits_text(total_used: float, total_available: float) -> str:
    return (
        "Here is your total <strong>OpenAI</strong> usage amount:\n"
        f"Used balance: <strong>{total_used}</strong>\n"
        f"Available balance: <strong>{total_available}</strong>"
    )


def history_text(history: list[dict[str, str]]) -> str:
    """Transcript without system entries, plus a token estimate over everything."""
    visible = format_message_history(without_system(history))
    if not visible:
        return EMPTY_HISTORY_TEXT
    approx = estimate_tokens(format_message_history(history).replace("\n", ""))
    return visible + f"Approximate token usage for your query: {approx}"


async def handle_start(*, chat_id: int | str, deps: BotRuntimeDeps, **_: Any) -> str:
    await safe_reply(deps, chat_id=chat_id, text=WELCOME_TEXT)
    return WELCOME_TEXT


async def handle_ping(*, chat_id: int | str, deps: BotRuntimeDeps, **_: Any) -> str:
    now = deps.now_fn()
    text = f"Pong! {now.isoformat()} {int(now.timestamp() * 1000)}"
    await safe_reply(deps, chat_id=chat_id, text=text)
    return text


async def handle_clear(*, user_id: Any, chat_id: int | str, deps: BotRuntimeDeps, **_: Any) -> str:
    key = _user_key(user_id)
    if not key:
        await safe_reply(deps, chat_id=chat_id, text=NO_USER_TEXT)
        return NO_USER_TEXT

    lock = await deps.user_locks.get(key)
    try:
        async with lock:
            await asyncio.to_thread(deps.history_store.clear, key)
    except Exception as exc:  # noqa: BLE001
        await report_failure(deps, exc, user_id=key, stage="command_clear")
        await safe_reply(deps, chat_id=chat_id, text=GENERIC_ERROR_TEXT)
        return GENERIC_ERROR_TEXT

    await safe_reply(deps, chat_id=chat_id, text=CLEARED_TEXT)
    return CLEARED_TEXT


async def handle_history(*, user_id: Any, chat_id: int | str, deps: BotRuntimeDeps, **_: Any) -> str:
    key = _user_key(user_id)
    if not key:
        await safe_reply(deps, chat_id=chat_id, text=NO_USER_TEXT)
        return NO_USER_TEXT

    try:
        history = await asyncio.to_thread(deps.history_store.get, key)
    except Exception as exc:  # noqa: BLE001
        await report_failure(deps, exc, user_id=key, stage="command_history")
        await safe_reply(deps, chat_id=chat_id, text=GENERIC_ERROR_TEXT)
        return GENERIC_ERROR_TEXT

    deps.logger.debug("History for %s: %d messages", key, len(history))
    text = history_text(history)
    await safe_reply(deps, chat_id=chat_id, text=text)
    return text


async def handle_credits(*, user_id: Any, chat_id: int | str, deps: BotRuntimeDeps, **_: Any) -> str:
    try:
        usage = await deps.completion.get_usage()
    except Exception as exc:  # noqa: BLE001
        await report_failure(deps, exc, user_id=_user_key(user_id) or None, stage="command_credits")
        await safe_reply(deps, chat_id=chat_id, text=GENERIC_ERROR_TEXT)
        return GENERIC_ERROR_TEXT

    text = credits_text(usage["total_used"], usage["total_available"])
    await safe_reply(deps, chat_id=chat_id, text=text, parse_mode="HTML")
    return text


COMMAND_HANDLERS: dict[str, CommandHandler] = {
    "start": handle_start,
    "clear": handle_clear,
    "history": handle_history,
    "credits": handle_credits,
    "ping": handle_ping,
}
