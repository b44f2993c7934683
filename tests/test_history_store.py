"""Tests for the Supabase-backed message history store.

Covers:
- get returns [] when no row exists, load returns None
- load distinguishes a stored empty list from a missing row
- set upserts the full list keyed by user_id
- backend failures raise HistoryStoreError (never treated as empty)
- malformed stored rows raise HistoryStoreError
- clear writes an empty list
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from telegram_assistant.services.assistant.history_store import (
    HistoryStoreError,
    MessageHistoryStore,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_db(
    select_rows: list[dict[str, Any]] | None = None,
) -> MagicMock:
    """Build a mock Supabase client that returns ``select_rows`` on select queries."""
    db = MagicMock()
    response = MagicMock()
    response.data = select_rows or []

    # Chain: db.table(...).select(...).eq(...).limit(...).execute()
    table = MagicMock()
    db.table.return_value = table
    table.select.return_value = table
    table.eq.return_value = table
    table.limit.return_value = table
    table.execute.return_value = response
    table.upsert.return_value = table

    return db


def _table(db: MagicMock) -> MagicMock:
    return db.table.return_value


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestLoadAndGet:
    def test_missing_row_returns_empty_list(self):
        store = MessageHistoryStore(_mock_db([]))
        assert store.get(42) == []
        assert store.load(42) is None

    def test_stored_empty_list_is_found(self):
        store = MessageHistoryStore(_mock_db([{"user_id": "42", "messages": []}]))
        stored = store.load(42)
        assert stored is not None
        assert stored.messages == []

    def test_returns_stored_messages_in_order(self):
        rows = [{
            "user_id": "42",
            "messages": [
                {"role": "user", "content": "hello"},
                {"role": "assistant", "content": "hi there\n"},
            ],
            "updated_at": "2024-01-01T00:00:00+00:00",
        }]
        store = MessageHistoryStore(_mock_db(rows))
        assert store.get(42) == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "hi there\n"},
        ]
        assert store.load(42).updated_at == "2024-01-01T00:00:00+00:00"

    def test_queries_by_string_user_id(self):
        db = _mock_db([])
        MessageHistoryStore(db, table="custom_history").get(42)
        db.table.assert_called_with("custom_history")
        _table(db).eq.assert_called_with("user_id", "42")

    def test_backend_failure_raises(self):
        db = _mock_db([])
        _table(db).execute.side_effect = RuntimeError("connection refused")
        store = MessageHistoryStore(db)
        with pytest.raises(HistoryStoreError, match="connection refused"):
            store.get(42)

    def test_malformed_role_raises(self):
        rows = [{"user_id": "42", "messages": [{"role": "robot", "content": "beep"}]}]
        with pytest.raises(HistoryStoreError):
            MessageHistoryStore(_mock_db(rows)).get(42)

    def test_non_list_messages_raises(self):
        rows = [{"user_id": "42", "messages": {"role": "user"}}]
        with pytest.raises(HistoryStoreError):
            MessageHistoryStore(_mock_db(rows)).get(42)

    def test_blank_user_id_raises(self):
        with pytest.raises(HistoryStoreError):
            MessageHistoryStore(_mock_db([])).get("  ")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestSetAndClear:
    def test_set_upserts_whole_list(self):
        db = _mock_db()
        store = MessageHistoryStore(db)
        store.set(42, [{"role": "user", "content": "hello"}])

        args, kwargs = _table(db).upsert.call_args
        payload = args[0]
        assert payload["user_id"] == "42"
        assert payload["messages"] == [{"role": "user", "content": "hello"}]
        assert "updated_at" in payload
        assert kwargs["on_conflict"] == "user_id"

    def test_second_set_replaces_first(self):
        db = _mock_db()
        store = MessageHistoryStore(db)
        store.set(42, [{"role": "user", "content": "A"}])
        store.set(42, [{"role": "user", "content": "B"}])

        last_payload = _table(db).upsert.call_args[0][0]
        assert last_payload["messages"] == [{"role": "user", "content": "B"}]

    def test_clear_writes_empty_list(self):
        db = _mock_db()
        MessageHistoryStore(db).clear(42)
        assert _table(db).upsert.call_args[0][0]["messages"] == []

    def test_write_failure_raises(self):
        db = _mock_db()
        _table(db).execute.side_effect = RuntimeError("timeout")
        with pytest.raises(HistoryStoreError, match="timeout"):
            MessageHistoryStore(db).set(42, [])
