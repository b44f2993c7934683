"""Per-user conversation history persisted in Supabase.

One row per Telegram user id in ``telegram_message_history``; the whole
message list lives in a JSONB column and is replaced on every write.
A missing row means "no history yet"; a failed read raises
``HistoryStoreError`` and is never reported as empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from supabase import Client

from .conversation_buffer import ROLES, ChatMessage

logger = logging.getLogger(__name__)


class HistoryStoreError(Exception):
    pass


@dataclass(frozen=True)
class StoredHistory:
    user_id: str
    messages: list[ChatMessage]
    updated_at: str | None = None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _coerce_messages(raw: Any, *, user_id: str) -> list[ChatMessage]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise HistoryStoreError(f"Stored history for {user_id} is not a list")

    messages: list[ChatMessage] = []
    for item in raw:
        if not isinstance(item, dict):
            raise HistoryStoreError(f"Stored history for {user_id} has a non-object entry")
        role = item.get("role")
        content = item.get("content")
        if role not in ROLES or not isinstance(content, str):
            raise HistoryStoreError(f"Stored history for {user_id} has a malformed message")
        messages.append(ChatMessage(role=role, content=content))
    return messages


class MessageHistoryStore:
    """CRUD for ``telegram_message_history``.  All methods are blocking."""

    def __init__(self, supabase_client: Client, *, table: str = "telegram_message_history") -> None:
        self.db = supabase_client
        self.table = table

    @staticmethod
    def _key(user_id: str | int) -> str:
        key = str(user_id if user_id is not None else "").strip()
        if not key:
            raise HistoryStoreError("Missing user_id")
        return key

    def load(self, user_id: str | int) -> StoredHistory | None:
        """Fetch the stored row.  Returns None if the user has no row yet."""
        key = self._key(user_id)
        try:
            response = (
                self.db.table(self.table)
                .select("user_id,messages,updated_at")
                .eq("user_id", key)
                .limit(1)
                .execute()
            )
        except Exception as exc:  # noqa: BLE001
            raise HistoryStoreError(f"Failed to read history for {key}: {exc}") from exc

        rows = response.data if isinstance(response.data, list) else []
        if not rows:
            return None

        row = rows[0]
        return StoredHistory(
            user_id=key,
            messages=_coerce_messages(row.get("messages"), user_id=key),
            updated_at=str(row["updated_at"]) if row.get("updated_at") else None,
        )

    def get(self, user_id: str | int) -> list[ChatMessage]:
        stored = self.load(user_id)
        return list(stored.messages) if stored else []

    def set(self, user_id: str | int, messages: list[ChatMessage]) -> None:
        """Replace the stored list (single upsert, last write wins)."""
        key = self._key(user_id)
        payload = {
            "user_id": key,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "updated_at": _utc_now_iso(),
        }
        try:
            self.db.table(self.table).upsert(payload, on_conflict="user_id").execute()
        except Exception as exc:  # noqa: BLE001
            raise HistoryStoreError(f"Failed to write history for {key}: {exc}") from exc
        logger.debug("Stored %d messages for user %s", len(messages), key)

    def clear(self, user_id: str | int) -> None:
        self.set(user_id, [])
