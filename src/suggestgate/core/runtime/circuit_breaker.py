from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from suggestgate.core.telemetry.logging import get_logger

logger = get_logger("suggestgate.circuit_breaker")


@dataclass(slots=True)
class BreakerState:
    is_open: bool = False
    failure_count: int = 0
    success_count: int = 0
    last_failure_at: float | None = None


class CircuitBreaker:
    """Error-rate breaker for one provider.

    Opens once the failure ratio exceeds ``error_rate_threshold`` over at least
    ``min_sample`` recorded outcomes. An open breaker lets a probe through
    after ``cooldown_ms`` have passed since the last failure.
    """

    def __init__(
        self,
        *,
        name: str = "provider",
        error_rate_threshold: float = 0.1,
        min_sample: int = 5,
        cooldown_ms: int = 30_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.error_rate_threshold = error_rate_threshold
        self.min_sample = max(1, min_sample)
        self.cooldown_ms = max(0, cooldown_ms)
        self.state = BreakerState()
        self._clock = clock
        self._lock = threading.Lock()

    def _error_rate(self) -> float:
        total = self.state.failure_count + self.state.success_count
        return self.state.failure_count / total if total else 0.0

    def is_circuit_open(self) -> bool:
        with self._lock:
            if not self.state.is_open:
                return False
            last = self.state.last_failure_at
            if last is None or (self._clock() - last) * 1000 > self.cooldown_ms:
                self.state.is_open = False
                self.state.failure_count = 0
                logger.info("circuit_breaker_reset", provider=self.name)
                return False
            return True

    def record_success(self) -> None:
        with self._lock:
            self.state.success_count += 1
            self.state.failure_count = 0
            self.state.is_open = False

    def record_failure(self) -> None:
        with self._lock:
            self.state.failure_count += 1
            self.state.last_failure_at = self._clock()
            total = self.state.failure_count + self.state.success_count
            if self.state.is_open or total < self.min_sample:
                return
            if self._error_rate() > self.error_rate_threshold:
                self.state.is_open = True
                logger.warning(
                    "circuit_breaker_opened",
                    provider=self.name,
                    error_rate=round(self._error_rate(), 3),
                    failures=self.state.failure_count,
                    successes=self.state.success_count,
                )

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "is_open": self.state.is_open,
                "failure_count": self.state.failure_count,
                "success_count": self.state.success_count,
                "error_rate": round(self._error_rate(), 4),
                "last_failure_at": self.state.last_failure_at,
                "error_rate_threshold": self.error_rate_threshold,
                "min_sample": self.min_sample,
                "cooldown_ms": self.cooldown_ms,
            }


class BreakerRegistry:
    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def for_provider(
        self,
        name: str,
        *,
        error_rate_threshold: float = 0.1,
        min_sample: int = 5,
        cooldown_ms: int = 30_000,
    ) -> CircuitBreaker:
        with self._lock:
            if name not in self._breakers:
                self._breakers[name] = CircuitBreaker(
                    name=name,
                    error_rate_threshold=error_rate_threshold,
                    min_sample=min_sample,
                    cooldown_ms=cooldown_ms,
                    clock=self._clock,
                )
            return self._breakers[name]

    def get(self, name: str) -> CircuitBreaker | None:
        return self._breakers.get(name)

    def snapshot(self) -> dict[str, dict]:
        return {k: b.snapshot() for k, b in self._breakers.items()}
