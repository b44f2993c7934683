import hmac
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import HTTPException, Request


@dataclass(frozen=True)
class AuthContext:
    is_owner: bool
    username: Optional[str] = None


def resolve_auth_context(username: Optional[str], allowed_usernames: Iterable[str]) -> AuthContext:
    """Compare the sender's Telegram username against the allow-list."""
    name = (username or "").strip().lstrip("@")
    if not name:
        return AuthContext(is_owner=False, username=None)
    return AuthContext(is_owner=any(name == user for user in allowed_usernames), username=name)


def verify_webhook_secret(expected_secret: str, provided_secret: Optional[str]) -> bool:
    expected = (expected_secret or "").strip()
    if not expected or not provided_secret:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided_secret.encode("utf-8"))


def require_webhook_secret(request: Request) -> None:
    """FastAPI dependency: reject webhook calls without the shared secret."""
    settings = request.app.state.settings
    if not verify_webhook_secret(settings.function_secret, request.query_params.get("secret")):
        raise HTTPException(status_code=405, detail="not allowed")
