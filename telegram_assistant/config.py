import json
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional, Tuple


class ConfigurationError(Exception):
  pass


DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_HISTORY_TABLE = "telegram_message_history"


@dataclass(frozen=True)
class Settings:
  """Centralized configuration pulled from environment variables."""

  bot_token: str
  allowed_usernames: Tuple[str, ...]
  function_secret: str
  openai_api_key: str
  supabase_url: str
  supabase_service_role: str

  app_name: str = "Telegram Assistant Backend"
  app_version: str = "0.0.1"
  openai_model_primary: str = DEFAULT_MODEL
  openai_model_fallback: Optional[str] = None
  openai_system_prompt: Optional[str] = None
  openai_timeout_seconds: float = 30.0
  token_warning_threshold: int = 2000
  turn_timeout_seconds: float = 40.0
  history_table: str = DEFAULT_HISTORY_TABLE
  usage_logging_enabled: bool = False
  log_level: str = "INFO"
  bot_username: Optional[str] = None


def _require(environ: Mapping[str, str], name: str, message: str) -> str:
  value = (environ.get(name) or "").strip()
  if not value:
    raise ConfigurationError(message)
  return value


def _parse_users(raw: str) -> Tuple[str, ...]:
  try:
    value = json.loads(raw or "[]")
  except json.JSONDecodeError as exc:
    raise ConfigurationError(f"USERS must be a JSON array of usernames: {exc}") from exc
  if not isinstance(value, list) or not all(isinstance(u, str) for u in value):
    raise ConfigurationError("USERS must be a JSON array of usernames")
  users = tuple(u.strip().lstrip("@") for u in value if u.strip())
  if not users:
    raise ConfigurationError("Please specify the users that have access to the bot.")
  return users


def _parse_number(environ: Mapping[str, str], name: str, default: float, cast=float):
  raw = (environ.get(name) or "").strip()
  if not raw:
    return cast(default)
  try:
    return cast(raw)
  except ValueError as exc:
    raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(environ: Mapping[str, str]) -> Settings:
  """Build Settings from an environment mapping. Fails fast on missing values."""
  bot_token = _require(environ, "BOT_TOKEN", "Please specify the Telegram Bot Token.")
  users = _parse_users(environ.get("USERS", ""))
  secret = _require(environ, "FUNCTION_SECRET", "Please specify FUNCTION_SECRET for webhook authentication.")
  openai_key = _require(environ, "OPENAI_API_KEY", "OPENAI_API_KEY environment variable is not set")
  supabase_url = _require(environ, "SUPABASE_URL", "SUPABASE_URL environment variable is not set")
  # accept the legacy name too
  service_role = (
      environ.get("SUPABASE_SERVICE_ROLE_KEY") or environ.get("SUPABASE_SERVICE_ROLE") or ""
  ).strip()
  if not service_role:
    raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY environment variable is not set")

  return Settings(
      bot_token=bot_token,
      allowed_usernames=users,
      function_secret=secret,
      openai_api_key=openai_key,
      supabase_url=supabase_url,
      supabase_service_role=service_role,
      app_version=environ.get("APP_VERSION", "0.0.1"),
      openai_model_primary=(environ.get("OPENAI_MODEL_PRIMARY") or "").strip() or DEFAULT_MODEL,
      openai_model_fallback=(environ.get("OPENAI_MODEL_FALLBACK") or "").strip() or None,
      openai_system_prompt=(environ.get("OPENAI_SYSTEM_PROMPT") or "").strip() or None,
      openai_timeout_seconds=_parse_number(environ, "OPENAI_TIMEOUT_SECONDS", 30.0),
      token_warning_threshold=_parse_number(environ, "TOKEN_WARNING_THRESHOLD", 2000, cast=int),
      turn_timeout_seconds=_parse_number(environ, "TURN_TIMEOUT_SECONDS", 40.0),
      history_table=(environ.get("HISTORY_TABLE") or "").strip() or DEFAULT_HISTORY_TABLE,
      usage_logging_enabled=environ.get("ENABLE_USAGE_LOGGING", "0") == "1",
      log_level=(environ.get("LOG_LEVEL") or "INFO").strip().upper(),
      bot_username=(environ.get("BOT_USERNAME") or "").strip().lstrip("@") or None,
  )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  return load_settings(os.environ)
