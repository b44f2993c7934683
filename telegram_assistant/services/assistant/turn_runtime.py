"""Conversation turn flow: history → completion → history → reply."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal

from .conversation_buffer import (
    ChatMessage,
    append_turn,
    assistant_message,
    estimate_tokens,
    format_message_history,
    user_message,
)
from .runtime_deps import BotRuntimeDeps

NO_USER_TEXT = "No User Found"
NO_MESSAGE_TEXT = "No message"
GENERIC_ERROR_TEXT = "Sorry an error has occurred, please try again later."
TIMEOUT_TEXT = "Sorry, that took too long to answer. Please try again later."


def token_warning_text(estimated_tokens: int) -> str:
    return (
        f"Just a heads up, you've used around *{estimated_tokens}* tokens for this query. "
        "To help you manage your token usage, we recommend running the */clear* command every so often."
    )


@dataclass(frozen=True)
class TurnResult:
    status: Literal["ok", "no_user", "error", "timeout"]
    reply: str
    warned: bool = False
    estimated_tokens: int = 0


async def safe_reply(
    deps: BotRuntimeDeps,
    *,
    chat_id: int | str,
    text: str,
    parse_mode: str | None = None,
) -> bool:
    """Send a reply; failures are logged and swallowed."""
    try:
        await deps.telegram.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode)
        return True
    except deps.telegram_error_cls as exc:
        deps.logger.warning("Failed to send Telegram reply to %s: %s", chat_id, exc)
        return False


async def report_failure(
    deps: BotRuntimeDeps,
    exc: BaseException,
    *,
    user_id: str | None,
    stage: str,
) -> None:
    deps.logger.error("Telegram %s failed for user %s: %s", stage, user_id, exc, exc_info=exc)
    await asyncio.to_thread(
        deps.error_logger.log,
        {
            "tool": "telegram_assistant",
            "severity": "error",
            "message": str(exc) or exc.__class__.__name__,
            "route": stage,
            "user_id": user_id,
            "error_type": exc.__class__.__name__,
        },
    )


def _seed_history(deps: BotRuntimeDeps, history: list[ChatMessage]) -> list[ChatMessage]:
    prompt = deps.settings.openai_system_prompt
    if history or not prompt:
        return history
    return [ChatMessage(role="system", content=prompt)]


async def run_conversation_turn(
    *,
    user_id: Any,
    chat_id: int | str,
    text: str | None,
    deps: BotRuntimeDeps,
) -> TurnResult:
    """Run one user→assistant turn for ``user_id``.

    History is written once, after the completion succeeds, so a failed turn
    leaves the stored history untouched.  Only the completion call is bounded
    by ``turn_timeout_seconds``; once the write starts the turn runs to the end.
    """
    key = str(user_id).strip() if user_id is not None else ""
    if not key:
        await safe_reply(deps, chat_id=chat_id, text=NO_USER_TEXT)
        return TurnResult(status="no_user", reply=NO_USER_TEXT)

    lock = await deps.user_locks.get(key)
    async with lock:
        try:
            if not text:
                await safe_reply(deps, chat_id=chat_id, text=NO_MESSAGE_TEXT)

            history = await asyncio.to_thread(deps.history_store.get, key)
            history = _seed_history(deps, history)

            estimated = estimate_tokens(format_message_history(history))
            warned = estimated > deps.settings.token_warning_threshold
            if warned:
                await safe_reply(
                    deps,
                    chat_id=chat_id,
                    text=token_warning_text(estimated),
                    parse_mode="Markdown",
                )

            message = user_message(text)
            completion = await asyncio.wait_for(
                deps.completion.complete([*history, message]),
                timeout=deps.settings.turn_timeout_seconds,
            )
            reply = completion["content"]

            await asyncio.to_thread(
                deps.history_store.set,
                key,
                append_turn(history, message, assistant_message(reply)),
            )
        except asyncio.TimeoutError as exc:
            await report_failure(deps, exc, user_id=key, stage="completion_timeout")
            await safe_reply(deps, chat_id=chat_id, text=TIMEOUT_TEXT)
            return TurnResult(status="timeout", reply=TIMEOUT_TEXT)
        except Exception as exc:  # noqa: BLE001
            await report_failure(deps, exc, user_id=key, stage="conversation_turn")
            await safe_reply(deps, chat_id=chat_id, text=GENERIC_ERROR_TEXT)
            return TurnResult(status="error", reply=GENERIC_ERROR_TEXT)

    await deps.usage_logger.log(
        tool="telegram_assistant",
        user_id=key,
        stage="conversation_turn",
        prompt_tokens=completion.get("tokens_in"),
        completion_tokens=completion.get("tokens_out"),
        total_tokens=completion.get("tokens_total"),
        model=completion.get("model"),
        meta={"estimated_history_tokens": estimated},
    )
    await safe_reply(deps, chat_id=chat_id, text=reply)
    return TurnResult(status="ok", reply=reply, warned=warned, estimated_tokens=estimated)
