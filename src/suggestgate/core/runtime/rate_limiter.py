from __future__ import annotations

import threading
import time
from collections import OrderedDict, deque
from collections.abc import Callable

WINDOW_SECONDS = 60.0


class RateLimiter:
    """Sliding 60s request window per conversation key.

    Windows live in an LRU map capped at ``max_keys``; keys idle for a full
    window are swept every ``sweep_every`` admissions.
    """

    def __init__(
        self,
        *,
        limit_per_minute: int,
        max_keys: int = 10_000,
        sweep_every: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit_per_minute = max(1, limit_per_minute)
        self.max_keys = max(1, max_keys)
        self.sweep_every = max(1, sweep_every)
        self._clock = clock
        self._windows: OrderedDict[str, deque[float]] = OrderedDict()
        self._lock = threading.Lock()
        self._calls = 0

    @staticmethod
    def _prune(window: deque[float], cutoff: float) -> None:
        while window and window[0] <= cutoff:
            window.popleft()

    def can_make_request(self, key: str) -> bool:
        with self._lock:
            now = self._clock()
            cutoff = now - WINDOW_SECONDS
            window = self._windows.get(key)
            if window is None:
                window = deque()
                self._windows[key] = window
            else:
                self._windows.move_to_end(key)
            self._prune(window, cutoff)

            self._calls += 1
            if self._calls % self.sweep_every == 0:
                self._sweep(cutoff, keep=key)
            while len(self._windows) > self.max_keys:
                self._windows.popitem(last=False)

            if len(window) >= self.limit_per_minute:
                return False
            window.append(now)
            return True

    def _sweep(self, cutoff: float, *, keep: str) -> None:
        stale = [k for k, w in self._windows.items() if k != keep and (not w or w[-1] <= cutoff)]
        for k in stale:
            del self._windows[k]

    def stats(self, key: str | None = None) -> dict:
        with self._lock:
            out: dict = {"limit_per_minute": self.limit_per_minute, "tracked_keys": len(self._windows)}
            if key is not None:
                window = self._windows.get(key, deque())
                cutoff = self._clock() - WINDOW_SECONDS
                recent = sum(1 for ts in window if ts > cutoff)
                out["recent_requests"] = recent
                out["remaining"] = max(0, self.limit_per_minute - recent)
            return out


class RateLimiterRegistry:
    def __init__(self, *, max_keys: int = 10_000, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_keys = max_keys
        self._clock = clock
        self._limiters: dict[str, RateLimiter] = {}
        self._lock = threading.Lock()

    def for_provider(self, name: str, *, limit_per_minute: int) -> RateLimiter:
        with self._lock:
            if name not in self._limiters:
                self._limiters[name] = RateLimiter(
                    limit_per_minute=limit_per_minute,
                    max_keys=self.max_keys,
                    clock=self._clock,
                )
            return self._limiters[name]
