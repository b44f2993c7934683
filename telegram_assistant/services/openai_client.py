"""Async OpenAI adapter using httpx.

Chat completion with primary→fallback model switch, plus the billing
credit-grants query behind ``/credits``.
"""

from __future__ import annotations

import time
from typing import Any, TypedDict

import httpx

from .assistant.conversation_buffer import ChatMessage

_OPENAI_BASE_URL = "https://api.openai.com"
_COMPLETIONS_PATH = "/v1/chat/completions"
_CREDIT_GRANTS_PATH = "/dashboard/billing/credit_grants"
_DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIError(Exception):
    pass


class OpenAIConfigurationError(OpenAIError):
    pass


class ChatCompletionResult(TypedDict):
    content: str
    tokens_in: int
    tokens_out: int
    tokens_total: int
    model: str
    duration_ms: int


class CreditUsage(TypedDict):
    total_used: float
    total_available: float


class OpenAIClient:
    def __init__(
        self,
        api_key: str,
        *,
        model: str = _DEFAULT_MODEL,
        fallback_model: str | None = None,
        temperature: float = 0.7,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        if not self.api_key:
            raise OpenAIConfigurationError("OPENAI_API_KEY environment variable is not set")
        self.model = model or _DEFAULT_MODEL
        self.fallback_model = fallback_model or None
        self.temperature = temperature

        self._client = httpx.AsyncClient(
            base_url=_OPENAI_BASE_URL,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call_completion(self, messages: list[ChatMessage], *, model: str) -> ChatCompletionResult:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "temperature": self.temperature,
        }

        start_ms = int(time.time() * 1000)
        try:
            response = await self._client.post(_COMPLETIONS_PATH, json=payload)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise OpenAIError(f"OpenAI request failed: {exc}") from exc
        duration_ms = int(time.time() * 1000) - start_ms

        if response.status_code != 200:
            body = response.text[:500]
            raise OpenAIError(f"OpenAI API error ({response.status_code}): {body}")

        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            raise OpenAIError("No choices in OpenAI response")
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise OpenAIError("No content in OpenAI response")

        usage = data.get("usage") or {}
        tokens_in = usage.get("prompt_tokens", 0)
        tokens_out = usage.get("completion_tokens", 0)

        return ChatCompletionResult(
            content=content,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            tokens_total=usage.get("total_tokens", tokens_in + tokens_out),
            model=data.get("model", model),
            duration_ms=duration_ms,
        )

    async def complete(self, messages: list[ChatMessage]) -> ChatCompletionResult:
        """Chat completion with automatic primary→fallback model retry."""
        try:
            return await self._call_completion(messages, model=self.model)
        except OpenAIError:
            if self.fallback_model and self.fallback_model != self.model:
                return await self._call_completion(messages, model=self.fallback_model)
            raise

    async def get_usage(self) -> CreditUsage:
        try:
            response = await self._client.get(_CREDIT_GRANTS_PATH)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise OpenAIError(f"OpenAI request failed: {exc}") from exc

        if response.status_code != 200:
            body = response.text[:500]
            raise OpenAIError(f"OpenAI API error ({response.status_code}): {body}")

        data = response.json()
        try:
            return CreditUsage(
                total_used=float(data["total_used"]),
                total_available=float(data["total_available"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise OpenAIError(f"Unexpected credit grants payload: {exc}") from exc
