from __future__ import annotations

import asyncio
from time import perf_counter

from suggestgate.core.providers.base import HealthReport, ProviderDescriptor
from suggestgate.core.providers.registry import ProviderRegistry
from suggestgate.core.runtime.circuit_breaker import BreakerRegistry
from suggestgate.core.runtime.errors import NoProviderAvailable, compact_error_summary
from suggestgate.core.telemetry.logging import get_logger

logger = get_logger("suggestgate.health")

HEALTHY = "healthy"
DEGRADED = "degraded"


class HealthAggregator:
    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        breakers: BreakerRegistry | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.registry = registry
        self.breakers = breakers
        self.timeout_seconds = timeout_seconds

    def _static_report(self, descriptor: ProviderDescriptor) -> HealthReport:
        if descriptor.init_error:
            return HealthReport(
                provider=descriptor.name, ok=False, status="PROVIDER_UNAVAILABLE", detail=descriptor.init_error
            )
        detail = "provider disabled" if descriptor.adapter is not None else "adapter not implemented"
        return HealthReport(provider=descriptor.name, ok=False, status="PROVIDER_DISABLED", detail=detail)

    async def _probe(self, descriptor: ProviderDescriptor) -> HealthReport:
        breaker = self.breakers.get(descriptor.name) if self.breakers else None
        if breaker is not None and breaker.is_circuit_open():
            return HealthReport(
                provider=descriptor.name, ok=False, status="CIRCUIT_BREAKER_OPEN", detail="circuit breaker open"
            )

        started = perf_counter()
        try:
            return await asyncio.wait_for(descriptor.adapter.health(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            detail = f"health probe timed out after {self.timeout_seconds}s"
        except Exception as exc:  # noqa: BLE001
            detail = compact_error_summary(exc)
        logger.warning("health_check_error", provider=descriptor.name, detail=detail)
        return HealthReport(
            provider=descriptor.name,
            ok=False,
            status="HEALTH_CHECK_ERROR",
            detail=detail,
            latency_ms=round((perf_counter() - started) * 1000, 2),
        )

    async def check_all(self) -> dict[str, HealthReport]:
        descriptors = self.registry.descriptors()
        probed = [d for d in descriptors if d.available]
        reports = await asyncio.gather(*(self._probe(d) for d in probed))
        by_name = {d.name: r for d, r in zip(probed, reports)}
        return {d.name: by_name.get(d.name) or self._static_report(d) for d in descriptors}

    def overall_status(self, reports: dict[str, HealthReport]) -> tuple[str, str | None]:
        try:
            recommended = self.registry.recommended().name
        except NoProviderAvailable:
            return DEGRADED, None
        report = reports.get(recommended)
        return (HEALTHY if report is not None and report.ok else DEGRADED), recommended
