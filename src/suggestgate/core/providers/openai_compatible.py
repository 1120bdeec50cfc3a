from __future__ import annotations

import os
from collections.abc import Mapping
from time import perf_counter
from typing import Any

import httpx

from suggestgate import __version__
from suggestgate.core.config.schema import ProviderConfig
from suggestgate.core.providers.base import (
    ChatMessage,
    HealthReport,
    ProviderAdapter,
    ProviderCall,
    ProviderReply,
)
from suggestgate.core.runtime.errors import InvalidResponseError, ProviderUnavailableError


class OpenAICompatibleAdapter(ProviderAdapter):
    """Speaks the OpenAI REST dialect (chat or legacy completions) over httpx."""

    name = "openai_compatible"
    prompt_style = "chat"
    completions_path = "/chat/completions"
    health_path = "/models"
    health_timeout_seconds = 5.0

    def __init__(
        self,
        settings: ProviderConfig,
        *,
        env: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings)
        self._env = env if env is not None else os.environ
        self.base_url = self._resolve_base_url(self._env)
        self.timeout_seconds = settings.timeout_seconds
        self._transport = transport

    def _resolve_base_url(self, env: Mapping[str, str]) -> str:
        base = ""
        if self.settings.base_url_env:
            base = (env.get(self.settings.base_url_env) or "").strip()
        base = base or (self.settings.base_url or "").strip()
        if not base:
            raise ProviderUnavailableError(f"{self.name}: missing base_url", provider=self.name)
        return base.rstrip("/")

    def rebind_env(self, env: Mapping[str, str]) -> None:
        self.base_url = self._resolve_base_url(env)
        self._env = env

    def _api_key(self) -> str:
        if not self.settings.api_key_env:
            return ""
        return (self._env.get(self.settings.api_key_env) or "").strip()

    def has_credentials(self) -> bool:
        return bool(self._api_key()) or not self.settings.requires_api_key

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": f"suggestgate/{__version__}"}
        token = self._api_key()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _payload(self, call: ProviderCall) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": call.model,
            "temperature": call.temperature,
            "max_tokens": call.max_tokens,
            "stream": False,
        }
        if self.prompt_style == "chat":
            messages = call.messages or [ChatMessage(role="user", content=call.prompt or "")]
            payload["messages"] = [{"role": m.role, "content": m.content} for m in messages]
        else:
            payload["prompt"] = call.prompt or ""
        if call.stop:
            payload["stop"] = list(call.stop)
        return payload

    def _extract_text(self, choice: dict[str, Any]) -> Any:
        if self.prompt_style == "chat":
            message = choice.get("message")
            return message.get("content") if isinstance(message, dict) else None
        return choice.get("text")

    def _parse(self, body: Any, call: ProviderCall) -> ProviderReply:
        choices = body.get("choices") if isinstance(body, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise InvalidResponseError(f"{self.name}: response has no choices", provider=self.name)

        usage = body.get("usage") if isinstance(body.get("usage"), dict) else {}
        tokens_in = usage.get("prompt_tokens")
        tokens_out = usage.get("completion_tokens")
        return ProviderReply(
            text=self._extract_text(choices[0]),
            model=str(body.get("model") or call.model),
            tokens_in=tokens_in if isinstance(tokens_in, int) else None,
            tokens_out=tokens_out if isinstance(tokens_out, int) else None,
            raw=body,
        )

    async def generate(self, call: ProviderCall) -> ProviderReply:
        if not self.has_credentials():
            raise ProviderUnavailableError(
                f"{self.name}: missing api key in env {self.settings.api_key_env}", provider=self.name
            )

        async with self._client(self.timeout_seconds) as client:
            resp = await client.post(
                f"{self.base_url}{self.completions_path}",
                json=self._payload(call),
                headers=self._headers(),
            )
            resp.raise_for_status()

        try:
            body = resp.json()
        except ValueError as exc:
            raise InvalidResponseError(f"{self.name}: response is not JSON", provider=self.name) from exc
        return self._parse(body, call)

    def _health_detail(self, body: Any) -> str | None:
        data = body.get("data") if isinstance(body, dict) else None
        if isinstance(data, list):
            return f"{len(data)} models available"
        return None

    async def health(self) -> HealthReport:
        if not self.has_credentials():
            return HealthReport(
                provider=self.name,
                ok=False,
                status="PROVIDER_UNAVAILABLE",
                detail=f"missing api key in env {self.settings.api_key_env}",
            )

        started = perf_counter()
        try:
            async with self._client(min(self.timeout_seconds, self.health_timeout_seconds)) as client:
                resp = await client.get(f"{self.base_url}{self.health_path}", headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            return HealthReport(
                provider=self.name,
                ok=False,
                status="unhealthy",
                detail=str(exc) or exc.__class__.__name__,
                latency_ms=round((perf_counter() - started) * 1000, 2),
            )

        try:
            detail = self._health_detail(resp.json())
        except ValueError:
            detail = None
        return HealthReport(
            provider=self.name,
            ok=True,
            status="healthy",
            detail=detail,
            latency_ms=round((perf_counter() - started) * 1000, 2),
        )

    def stats(self) -> dict[str, Any]:
        return {
            "prompt_style": self.prompt_style,
            "base_url": self.base_url,
            "completions_path": self.completions_path,
            "health_path": self.health_path,
            "timeout_seconds": self.timeout_seconds,
            "credentials_present": self.has_credentials(),
        }
