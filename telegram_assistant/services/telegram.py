import json
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field


class TelegramError(Exception):
    pass


class TelegramConfigurationError(TelegramError):
    pass


class TelegramAuthError(TelegramError):
    pass


class TelegramAPIError(TelegramError):
    pass


# Inbound webhook payloads. Unknown fields are ignored.


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    username: Optional[str] = None
    first_name: Optional[str] = None


class TelegramChat(BaseModel):
    id: int
    type: Optional[str] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None
    date: Optional[int] = None


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None


@dataclass(frozen=True)
class TelegramMessageResponse:
    ok: bool
    message_id: Optional[int] = None
    chat_id: Optional[int] = None
    raw: Optional[dict[str, Any]] = None


class TelegramService:
    def __init__(
        self,
        bot_token: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.bot_token = (bot_token or "").strip()
        if not self.bot_token:
            raise TelegramConfigurationError("BOT_TOKEN not set")

        self._client = httpx.AsyncClient(
            base_url=f"https://api.telegram.org/bot{self.bot_token}",
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(f"/{method}", json=payload)
        except httpx.HTTPError as exc:
            raise TelegramAPIError(f"Telegram request failed: {exc}") from exc

        if response.status_code == 401:
            raise TelegramAuthError("Telegram auth failed (401). Check BOT_TOKEN.")

        if response.status_code < 200 or response.status_code >= 300:
            raise TelegramAPIError(f"Telegram API error ({response.status_code}): {response.text}")

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise TelegramAPIError(f"Telegram API returned invalid JSON: {exc}") from exc

        if not data.get("ok"):
            description = data.get("description")
            raise TelegramAPIError(f"Telegram API error: {description or 'unknown_error'}")

        return data.get("result")

    async def send_message(
        self,
        *,
        chat_id: int | str,
        text: str,
        parse_mode: Optional[str] = None,
    ) -> TelegramMessageResponse:
        if chat_id is None or str(chat_id).strip() == "":
            raise TelegramAPIError("Telegram send_message missing chat_id")

        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        result = await self._call("sendMessage", payload)
        result = result if isinstance(result, dict) else {}
        chat = result.get("chat") if isinstance(result.get("chat"), dict) else {}

        return TelegramMessageResponse(
            ok=True,
            message_id=int(result["message_id"]) if result.get("message_id") else None,
            chat_id=int(chat["id"]) if chat.get("id") else None,
            raw=result,
        )

    async def set_my_commands(self, commands: list[dict[str, str]]) -> bool:
        result = await self._call("setMyCommands", {"commands": commands})
        return bool(result)
