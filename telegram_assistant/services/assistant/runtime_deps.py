"""Typed dependency container for the Telegram assistant runtime layers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging import Logger
from typing import Any, Callable, Protocol

from ...config import Settings
from .conversation_buffer import ChatMessage


class TelegramClientProtocol(Protocol):
    async def send_message(self, *, chat_id: int | str, text: str, parse_mode: str | None = None) -> Any: ...
    async def set_my_commands(self, commands: list[dict[str, str]]) -> Any: ...
    async def aclose(self) -> Any: ...


class CompletionProviderProtocol(Protocol):
    async def complete(self, messages: list[ChatMessage]) -> Any: ...
    async def get_usage(self) -> Any: ...


class HistoryStoreProtocol(Protocol):
    def get(self, user_id: str | int) -> list[ChatMessage]: ...
    def set(self, user_id: str | int, messages: list[ChatMessage]) -> None: ...
    def clear(self, user_id: str | int) -> None: ...


class ErrorLoggerProtocol(Protocol):
    def log(self, payload: dict[str, Any]) -> None: ...


class UsageLoggerProtocol(Protocol):
    async def log(self, **kwargs: Any) -> None: ...


class UserLockRegistry:
    """One ``asyncio.Lock`` per user id.  Single-process only."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._guard = asyncio.Lock()

    async def get(self, user_id: str) -> asyncio.Lock:
        async with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[user_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BotRuntimeDeps:
    settings: Settings
    logger: Logger
    history_store: HistoryStoreProtocol
    telegram: TelegramClientProtocol
    completion: CompletionProviderProtocol
    usage_logger: UsageLoggerProtocol
    error_logger: ErrorLoggerProtocol
    telegram_error_cls: type[Exception]
    user_locks: UserLockRegistry = field(default_factory=UserLockRegistry)
    now_fn: Callable[[], datetime] = _utc_now
