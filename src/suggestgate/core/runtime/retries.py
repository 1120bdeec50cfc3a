from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from suggestgate.core.runtime.errors import ErrorInfo, classify_error

T = TypeVar("T")


@dataclass(slots=True)
class RetryPolicy:
    max_retries: int = 1
    backoff_ms: int = 250

    @property
    def max_attempts(self) -> int:
        return max(0, self.max_retries) + 1


async def run_with_retries(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    category: str,
    component: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Callable[[int, float, ErrorInfo, Exception], None] | None = None,
) -> T:
    """Await ``fn`` up to ``policy.max_attempts`` times.

    Only errors that ``classify_error`` marks retryable are retried; the last
    error is re-raised once attempts run out.
    """

    def _retryable(exc: BaseException) -> bool:
        if not isinstance(exc, Exception):
            return False
        return classify_error(exc, category=category, component=component).retryable

    def _before_sleep(state: RetryCallState) -> None:
        if on_retry is None or state.outcome is None:
            return
        exc = state.outcome.exception()
        delay = state.next_action.sleep if state.next_action else 0.0
        info = classify_error(exc, category=category, component=component)
        on_retry(state.attempt_number, delay, info, exc)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.backoff_ms / 1000.0, exp_base=2),
        retry=retry_if_exception(_retryable),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
    raise RuntimeError("retries_exhausted")
