import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ...auth import require_webhook_secret
from ...services.assistant import BotRuntimeDeps, handle_update_runtime
from ...services.telegram import TelegramUpdate

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])


def get_bot_deps(request: Request) -> BotRuntimeDeps:
    deps = getattr(request.app.state, "bot_deps", None)
    if deps is None:
        raise HTTPException(status_code=503, detail="Bot runtime not initialized")
    return deps


def _parse_json(body: bytes) -> dict[str, Any]:
    try:
        value = json.loads(body)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    return value


@router.post("/webhook", dependencies=[Depends(require_webhook_secret)])
async def telegram_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    deps: BotRuntimeDeps = Depends(get_bot_deps),
):
    payload = _parse_json(await request.body())

    try:
        update = TelegramUpdate.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid Telegram update: {exc}") from exc

    if update.message is None:
        _logger.debug("Ignoring update %s without a message", update.update_id)
        return JSONResponse({"ok": True})

    background_tasks.add_task(handle_update_runtime, update=update, deps=deps)
    return JSONResponse({"ok": True})
