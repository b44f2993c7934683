"""Telegram update runtime: allow-list gate and command dispatch."""

from __future__ import annotations

from ...auth import resolve_auth_context
from ..telegram import TelegramUpdate
from .commands import COMMAND_HANDLERS, parse_command
from .runtime_deps import BotRuntimeDeps
from .turn_runtime import TIMEOUT_TEXT, report_failure, run_conversation_turn, safe_reply

NOT_ALLOWED_TEXT = "Sorry, you are not allowed. This is personal AI Bot"

__all__ = ["NOT_ALLOWED_TEXT", "TIMEOUT_TEXT", "handle_update_runtime"]


async def _dispatch(*, update: TelegramUpdate, deps: BotRuntimeDeps) -> None:
    message = update.message
    if message is None:
        return

    sender = message.from_user
    chat_id = message.chat.id
    user_id = sender.id if sender else None

    auth = resolve_auth_context(sender.username if sender else None, deps.settings.allowed_usernames)
    if not auth.is_owner:
        deps.logger.info("Rejected update %s from %s", update.update_id, auth.username or "<unknown>")
        await safe_reply(deps, chat_id=chat_id, text=NOT_ALLOWED_TEXT)
        return

    parsed = parse_command(message.text, bot_username=deps.settings.bot_username)
    handler = COMMAND_HANDLERS.get(parsed[0]) if parsed else None
    if handler is not None:
        await handler(user_id=user_id, chat_id=chat_id, args=parsed[1], deps=deps)
        return

    # The completion call inside the turn carries its own timeout.
    await run_conversation_turn(user_id=user_id, chat_id=chat_id, text=message.text, deps=deps)


async def handle_update_runtime(*, update: TelegramUpdate, deps: BotRuntimeDeps) -> None:
    """Handle one Telegram update.  Never raises to the transport."""
    message = update.message
    if message is None:
        return

    user_id = str(message.from_user.id) if message.from_user else None
    try:
        await _dispatch(update=update, deps=deps)
    except Exception as exc:  # noqa: BLE001
        await report_failure(deps, exc, user_id=user_id, stage="update_dispatch")
