"""Tests for the conversation buffer: token estimate, transcript formatting, turn assembly."""

from __future__ import annotations

from telegram_assistant.services.assistant.conversation_buffer import (
    ChatMessage,
    append_turn,
    assistant_message,
    estimate_tokens,
    format_message_history,
    user_message,
    without_system,
)


# ---------------------------------------------------------------------------
# estimate_tokens
# ---------------------------------------------------------------------------


class TestEstimateTokens:
    def test_basic_heuristic(self):
        # "hello world" = 11 chars → 11 // 4 = 2
        assert estimate_tokens("hello world") == 2

    def test_empty_string(self):
        assert estimate_tokens("") == 0

    def test_short_string_minimum(self):
        assert estimate_tokens("hi") == 1

    def test_deterministic(self):
        text = "The quick brown fox jumps over the lazy dog. " * 20
        assert estimate_tokens(text) == estimate_tokens(text)

    def test_monotonic_when_appending(self):
        base = "abc"
        previous = estimate_tokens(base)
        for i in range(1, 200):
            current = estimate_tokens(base + "z" * i)
            assert current >= previous
            previous = current


# ---------------------------------------------------------------------------
# format_message_history
# ---------------------------------------------------------------------------


class TestFormatMessageHistory:
    def test_empty_history_is_empty_string(self):
        assert format_message_history([]) == ""

    def test_each_message_gets_one_newline(self):
        history = [
            ChatMessage(role="user", content="hello"),
            ChatMessage(role="assistant", content="hi there\n"),
        ]
        assert format_message_history(history) == "user: hello\nassistant: hi there\n\n"

    def test_preserves_order(self):
        history = [ChatMessage(role="user", content=str(i)) for i in range(3)]
        assert format_message_history(history) == "user: 0\nuser: 1\nuser: 2\n"

    def test_without_system_filters_only_system(self):
        history = [
            ChatMessage(role="system", content="be nice"),
            ChatMessage(role="user", content="hello"),
        ]
        assert without_system(history) == [{"role": "user", "content": "hello"}]
        assert format_message_history(without_system(history)) == "user: hello\n"

    def test_system_only_history_renders_empty_for_display(self):
        history = [ChatMessage(role="system", content="be nice")]
        assert format_message_history(without_system(history)) == ""


# ---------------------------------------------------------------------------
# turn assembly
# ---------------------------------------------------------------------------


class TestTurnAssembly:
    def test_user_message_defaults_to_empty_content(self):
        assert user_message(None) == {"role": "user", "content": ""}

    def test_assistant_message_gets_one_trailing_newline(self):
        assert assistant_message("hi there") == {"role": "assistant", "content": "hi there\n"}

    def test_append_turn_does_not_mutate_original(self):
        history = [ChatMessage(role="user", content="first")]
        result = append_turn(history, user_message("second"), assistant_message("reply"))
        assert len(history) == 1
        assert [m["role"] for m in result] == ["user", "user", "assistant"]
        assert result[-2]["content"] == "second"
