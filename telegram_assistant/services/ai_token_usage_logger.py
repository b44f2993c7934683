"""Best-effort AI token usage logger.

Writes to ``public.ai_token_usage`` via the service-role Supabase client.
Never throws: failures are logged and swallowed so they never block the
reply path.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from supabase import Client

logger = logging.getLogger(__name__)


class AITokenUsageLogger:
    def __init__(self, db: Client | None, *, enabled: bool) -> None:
        self.db = db
        self.enabled = enabled

    async def log(
        self,
        *,
        tool: str,
        user_id: str | None = None,
        stage: str | None = None,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        total_tokens: int | None = None,
        model: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Insert a row into ``ai_token_usage``.  Best-effort, never raises."""
        if not self.enabled or self.db is None:
            return
        if not user_id:
            # ai_token_usage.user_id is NOT NULL; skip silently if actor is unresolved.
            return

        payload: dict[str, Any] = {"tool": tool, "user_id": user_id}
        if stage is not None:
            payload["stage"] = stage
        if prompt_tokens is not None:
            payload["prompt_tokens"] = prompt_tokens
        if completion_tokens is not None:
            payload["completion_tokens"] = completion_tokens
        if total_tokens is not None:
            payload["total_tokens"] = total_tokens
        if model is not None:
            payload["model"] = model
        if meta is not None:
            payload["meta"] = meta

        db = self.db
        try:
            await asyncio.to_thread(
                lambda: db.table("ai_token_usage").insert(payload).execute()
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to log AI token usage: %s", exc)
