import pytest

from telegram_assistant.config import ConfigurationError, load_settings

_ENV = {
    "BOT_TOKEN": "123:abc",
    "USERS": '["alice", "@bob"]',
    "FUNCTION_SECRET": "s3cret",
    "OPENAI_API_KEY": "sk-test",
    "SUPABASE_URL": "http://localhost:54321",
    "SUPABASE_SERVICE_ROLE_KEY": "service_role_token",
}


def test_loads_required_values_and_defaults():
    settings = load_settings(_ENV)
    assert settings.allowed_usernames == ("alice", "bob")
    assert settings.token_warning_threshold == 2000
    assert settings.turn_timeout_seconds == 40.0
    assert settings.openai_model_primary == "gpt-4o-mini"
    assert settings.openai_model_fallback is None
    assert settings.history_table == "telegram_message_history"
    assert settings.usage_logging_enabled is False


@pytest.mark.parametrize(
    "missing, message",
    [
        ("BOT_TOKEN", "Telegram Bot Token"),
        ("USERS", "users that have access"),
        ("FUNCTION_SECRET", "FUNCTION_SECRET"),
        ("OPENAI_API_KEY", "OPENAI_API_KEY"),
        ("SUPABASE_URL", "SUPABASE_URL"),
        ("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
    ],
)
def test_missing_required_value_fails_fast(missing, message):
    env = {k: v for k, v in _ENV.items() if k != missing}
    with pytest.raises(ConfigurationError, match=message):
        load_settings(env)


def test_legacy_service_role_name_accepted():
    env = {k: v for k, v in _ENV.items() if k != "SUPABASE_SERVICE_ROLE_KEY"}
    env["SUPABASE_SERVICE_ROLE"] = "legacy"
    assert load_settings(env).supabase_service_role == "legacy"


def test_empty_user_list_rejected():
    with pytest.raises(ConfigurationError):
        load_settings({**_ENV, "USERS": "[]"})


def test_malformed_users_rejected():
    with pytest.raises(ConfigurationError, match="JSON array"):
        load_settings({**_ENV, "USERS": "alice,bob"})


def test_numeric_overrides():
    settings = load_settings({**_ENV, "TOKEN_WARNING_THRESHOLD": "500", "TURN_TIMEOUT_SECONDS": "12.5"})
    assert settings.token_warning_threshold == 500
    assert settings.turn_timeout_seconds == 12.5


def test_bot_username_strips_at_sign():
    assert load_settings(_ENV).bot_username is None
    assert load_settings({**_ENV, "BOT_USERNAME": " @my_ai_bot "}).bot_username == "my_ai_bot"


def test_non_numeric_override_rejected():
    with pytest.raises(ConfigurationError, match="TOKEN_WARNING_THRESHOLD"):
        load_settings({**_ENV, "TOKEN_WARNING_THRESHOLD": "lots"})


def test_settings_are_immutable():
    settings = load_settings(_ENV)
    with pytest.raises(Exception):
        settings.allowed_usernames = ("mallory",)
