from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from suggestgate.core.config.schema import AppConfig
from suggestgate.core.providers.base import GenerationRequest, GenerationResult
from suggestgate.core.providers.client import RetryingClient
from suggestgate.core.providers.health import HealthAggregator
from suggestgate.core.providers.registry import ProviderRegistry, build_registry
from suggestgate.core.runtime.circuit_breaker import BreakerRegistry
from suggestgate.core.runtime.rate_limiter import RateLimiterRegistry
from suggestgate.core.telemetry.usage import UsageMeter
from suggestgate.core.telemetry.usage_log import UsageLog


class ProviderGateway:
    """Inbound surface used by the suggestion service."""

    def __init__(
        self,
        registry: ProviderRegistry,
        client: RetryingClient,
        health: HealthAggregator,
        usage_log: UsageLog | None = None,
    ) -> None:
        self.registry = registry
        self.client = client
        self.health = health
        self.usage_log = usage_log or UsageLog()

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        result = await self.client.generate(request)
        self.usage_log.record_generation(request, result)
        return result

    async def check_health(self) -> dict[str, Any]:
        reports = await self.health.check_all()
        status, recommended = self.health.overall_status(reports)
        self.usage_log.record_health(reports, status)
        return {"status": status, "recommended": recommended, "providers": reports}

    def available_providers(self) -> list[dict[str, Any]]:
        return [
            {
                "name": d.name,
                "display_name": d.display_name,
                "default_model": d.default_model,
                "models": list(d.supported_models),
            }
            for d in self.registry.available()
        ]

    def get_stats(self) -> dict[str, dict[str, Any]]:
        stats: dict[str, dict[str, Any]] = {}
        for d in self.registry.available():
            s = d.settings
            breaker = self.client.breaker_for(d)
            limiter = self.client.limiter_for(d)
            stats[d.name] = {
                "display_name": d.display_name,
                "models": list(d.supported_models),
                "circuit_breaker": breaker.snapshot(),
                "rate_limiter": limiter.stats(),
                "config": {
                    "timeout_seconds": s.timeout_seconds,
                    "max_retries": s.max_retries,
                    "backoff_ms": s.backoff_ms,
                    "max_tokens_out": s.max_tokens_out,
                    "max_output_length": s.max_output_length,
                    "rate_limit_per_minute": s.rate_limit_per_minute,
                    "error_rate_threshold": s.error_rate_threshold,
                    "min_sample": s.min_sample,
                    "cooldown_ms": s.cooldown_ms,
                    "self_hosted": s.self_hosted,
                },
                "adapter": d.adapter.stats() if d.adapter is not None else {},
            }
        return stats


def build_gateway(
    cfg: AppConfig,
    *,
    env: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    usage_log: UsageLog | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ProviderGateway:
    env = env if env is not None else os.environ
    registry = build_registry(cfg, env=env, transport=transport)
    breakers = BreakerRegistry()
    client = RetryingClient(
        registry,
        breakers=breakers,
        limiters=RateLimiterRegistry(max_keys=cfg.runtime.rate_limiter_max_keys),
        meter=UsageMeter(cfg.pricing),
        sleep=sleep,
        default_max_latency_ms=cfg.runtime.default_max_latency_ms,
    )
    health = HealthAggregator(registry, breakers=breakers, timeout_seconds=cfg.runtime.health_timeout_seconds)
    return ProviderGateway(
        registry,
        client,
        health,
        usage_log=usage_log or UsageLog(history=cfg.telemetry.usage_history),
    )
