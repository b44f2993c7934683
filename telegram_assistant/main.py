import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from supabase import create_client

from .api.routes import telegram
from .config import Settings, get_settings
from .error_logging import AppErrorLogger
from .services.ai_token_usage_logger import AITokenUsageLogger
from .services.assistant import BOT_COMMANDS, BotRuntimeDeps
from .services.assistant.history_store import MessageHistoryStore
from .services.openai_client import OpenAIClient
from .services.telegram import TelegramError, TelegramService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_bot_deps(settings: Settings) -> BotRuntimeDeps:
    supabase = create_client(settings.supabase_url, settings.supabase_service_role)
    return BotRuntimeDeps(
        settings=settings,
        logger=logging.getLogger("telegram_assistant.runtime"),
        history_store=MessageHistoryStore(supabase, table=settings.history_table),
        telegram=TelegramService(settings.bot_token),
        completion=OpenAIClient(
            settings.openai_api_key,
            model=settings.openai_model_primary,
            fallback_model=settings.openai_model_fallback,
            timeout=settings.openai_timeout_seconds,
        ),
        usage_logger=AITokenUsageLogger(supabase, enabled=settings.usage_logging_enabled),
        error_logger=AppErrorLogger(supabase, enabled=settings.usage_logging_enabled),
        telegram_error_cls=TelegramError,
    )


async def register_bot_commands(deps: BotRuntimeDeps) -> bool:
    try:
        await deps.telegram.set_my_commands(BOT_COMMANDS)
    except TelegramError as exc:
        logger.warning("Failed to register Telegram bot commands: %s", exc)
        return False
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_deps = getattr(app.state, "bot_deps", None) is None
    if owns_deps:
        app.state.bot_deps = build_bot_deps(app.state.settings)
        await register_bot_commands(app.state.bot_deps)
    try:
        yield
    finally:
        if owns_deps:
            await app.state.bot_deps.telegram.aclose()
            await app.state.bot_deps.completion.aclose()
            app.state.bot_deps = None


def create_app(
    settings: Optional[Settings] = None,
    *,
    bot_deps: Optional[BotRuntimeDeps] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.bot_deps = bot_deps

    app.include_router(telegram.router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "version": settings.app_version}

    return app


def run() -> None:
    import uvicorn

    uvicorn.run("telegram_assistant.main:create_app", factory=True, host="0.0.0.0", port=8000)
