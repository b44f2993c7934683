from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

logger = logging.getLogger(__name__)


class AppErrorLogger:
    """Thin wrapper around Supabase inserts for `app_error_events`."""

    def __init__(self, client: Optional[Client], *, enabled: bool) -> None:
        self._client = client
        self._enabled = enabled

    def log(self, payload: Dict[str, Any]) -> None:
        if not self._enabled or self._client is None:
            return

        allowed = {
            "occurred_at",
            "tool",
            "severity",
            "message",
            "route",
            "user_id",
            "meta",
        }

        base_row = {k: v for k, v in payload.items() if k in allowed and v is not None}
        base_row.setdefault("occurred_at", datetime.now(timezone.utc).isoformat())
        extra = {k: v for k, v in payload.items() if k not in allowed and v is not None}
        if extra:
            meta = base_row.get("meta") if isinstance(base_row.get("meta"), dict) else {}
            base_row["meta"] = {**meta, **extra}

        try:
            self._client.table("app_error_events").insert(base_row).execute()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to record app error event: %s", exc)
