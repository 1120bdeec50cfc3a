from __future__ import annotations

from collections import deque
from typing import Any

from suggestgate.core.providers.base import GenerationRequest, GenerationResult, HealthReport
from suggestgate.core.telemetry.logging import get_logger


class UsageLog:
    """Default sink for generation outcomes and health reports.

    Emits one structured log event per record and keeps a bounded history for
    diagnostics. Deployments hand records to their own metrics store by
    passing a different object with the same two ``record_*`` methods.
    """

    def __init__(self, *, history: int = 500, logger=None) -> None:
        self._events: deque[dict[str, Any]] = deque(maxlen=max(1, history))
        self._logger = logger or get_logger("suggestgate.usage_log")

    def record_generation(self, request: GenerationRequest, result: GenerationResult) -> None:
        payload = {
            "provider": result.provider,
            "model": result.model,
            "workspace_id": request.workspace_id,
            "conversation_id": request.conversation_id,
            "ok": result.ok,
            "error_kind": result.error_kind.value if result.error_kind else None,
            "tokens_in": result.usage.tokens_in,
            "tokens_out": result.usage.tokens_out,
            "latency_ms": result.usage.latency_ms,
            "cost_usd": result.usage.cost_usd,
        }
        self._events.append({"event": "generation", **payload})
        if result.ok:
            self._logger.info("generation_completed", **payload)
        else:
            self._logger.warning("generation_failed", error=result.error_message, **payload)

    def record_health(self, reports: dict[str, HealthReport], overall: str) -> None:
        summary = {name: r.status for name, r in reports.items()}
        self._events.append({"event": "health", "status": overall, "providers": summary})
        self._logger.info("health_checked", status=overall, providers=summary)

    def recent(self, limit: int = 20, provider: str | None = None) -> list[dict[str, Any]]:
        items = list(self._events)
        if provider is not None:
            items = [i for i in items if i.get("provider") == provider]
        return items[-limit:]
