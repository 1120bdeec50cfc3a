from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from time import perf_counter

from suggestgate.core.providers.base import (
    ChatMessage,
    GenerationRequest,
    GenerationResult,
    ProviderCall,
    ProviderDescriptor,
    ProviderReply,
)
from suggestgate.core.providers.registry import ProviderRegistry
from suggestgate.core.runtime.circuit_breaker import BreakerRegistry, CircuitBreaker
from suggestgate.core.runtime.errors import (
    ErrorInfo,
    ErrorKind,
    InvalidResponseError,
    NoProviderAvailable,
    ProviderUnavailableError,
    compact_error_summary,
)
from suggestgate.core.runtime.rate_limiter import RateLimiter, RateLimiterRegistry
from suggestgate.core.runtime.retries import RetryPolicy, run_with_retries
from suggestgate.core.telemetry.logging import get_logger
from suggestgate.core.telemetry.usage import UsageMeter
from suggestgate.core.text.prompt_builder import SYSTEM_PREAMBLE, build_messages, build_prompt
from suggestgate.core.text.sanitizer import sanitize

DEFAULT_CONVERSATION_KEY = "anonymous"


def clamp_temperature(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def clamp_max_tokens(value: int, ceiling: int) -> int:
    return max(1, min(int(value), ceiling))


class RetryingClient:
    """Gated, retried and metered calls to the resolved provider.

    Every outcome comes back as a ``GenerationResult``; provider failures
    never raise out of ``generate``.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        breakers: BreakerRegistry | None = None,
        limiters: RateLimiterRegistry | None = None,
        meter: UsageMeter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        default_max_latency_ms: int | None = None,
    ) -> None:
        self.registry = registry
        self.breakers = breakers or BreakerRegistry()
        self.limiters = limiters or RateLimiterRegistry()
        self.meter = meter or UsageMeter()
        self.default_max_latency_ms = default_max_latency_ms
        self._sleep = sleep
        self.logger = get_logger("suggestgate.retrying_client")

    def breaker_for(self, descriptor: ProviderDescriptor) -> CircuitBreaker:
        s = descriptor.settings
        return self.breakers.for_provider(
            descriptor.name,
            error_rate_threshold=s.error_rate_threshold,
            min_sample=s.min_sample,
            cooldown_ms=s.cooldown_ms,
        )

    def limiter_for(self, descriptor: ProviderDescriptor) -> RateLimiter:
        return self.limiters.for_provider(descriptor.name, limit_per_minute=descriptor.settings.rate_limit_per_minute)

    def _select_model(self, descriptor: ProviderDescriptor, requested: str | None) -> str:
        if not requested:
            return descriptor.default_model
        if descriptor.supported_models and requested not in descriptor.supported_models:
            self.logger.warning(
                "model_not_supported",
                provider=descriptor.name,
                requested=requested,
                selected=descriptor.default_model,
            )
            return descriptor.default_model
        return requested

    def _build_call(self, descriptor: ProviderDescriptor, request: GenerationRequest, model: str) -> ProviderCall:
        settings = descriptor.settings
        temperature = clamp_temperature(request.temperature)
        max_tokens = clamp_max_tokens(request.max_tokens, settings.max_tokens_out)
        call = ProviderCall(model=model, temperature=temperature, max_tokens=max_tokens, stop=list(settings.stop))

        if descriptor.adapter is not None and descriptor.adapter.prompt_style == "completion":
            if request.context_messages:
                call.prompt = build_prompt(request.context_messages, request.policy, max_tokens)
            else:
                call.prompt = request.prompt or ""
        elif request.context_messages:
            call.messages = build_messages(request.context_messages, request.policy, max_tokens)
        else:
            call.messages = [
                ChatMessage(role="system", content=SYSTEM_PREAMBLE),
                ChatMessage(role="user", content=request.prompt or ""),
            ]
        return call

    @staticmethod
    def _prompt_text(call: ProviderCall) -> str:
        if call.prompt is not None:
            return call.prompt
        return "\n".join(m.content for m in call.messages or [])

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        try:
            descriptor = self.registry.resolve(request.provider_name)
        except NoProviderAvailable as exc:
            self.logger.error("no_provider_available", requested=request.provider_name)
            return GenerationResult.failure(ErrorKind.PROVIDER_UNAVAILABLE, str(exc), provider=request.provider_name)

        model = self._select_model(descriptor, request.model)
        deadline_ms = request.max_latency_ms or self.default_max_latency_ms
        started = perf_counter()
        try:
            if deadline_ms:
                result = await asyncio.wait_for(self._run(descriptor, request, model), timeout=deadline_ms / 1000)
            else:
                result = await self._run(descriptor, request, model)
        except asyncio.TimeoutError:
            self.breaker_for(descriptor).record_failure()
            self.logger.warning(
                "generation_deadline_exceeded",
                provider=descriptor.name,
                conversation_id=request.conversation_id,
                max_latency_ms=deadline_ms,
            )
            result = GenerationResult.failure(
                ErrorKind.TIMEOUT,
                f"deadline of {deadline_ms}ms exceeded",
                provider=descriptor.name,
                model=model,
            )
        result.usage.latency_ms = round((perf_counter() - started) * 1000, 2)
        return result

    async def _run(self, descriptor: ProviderDescriptor, request: GenerationRequest, model: str) -> GenerationResult:
        name = descriptor.name
        settings = descriptor.settings
        adapter = descriptor.adapter
        if adapter is None:
            return GenerationResult.failure(
                ErrorKind.PROVIDER_UNAVAILABLE, f"{name}: no adapter available", provider=name, model=model
            )

        breaker = self.breaker_for(descriptor)
        if breaker.is_circuit_open():
            return GenerationResult.failure(
                ErrorKind.CIRCUIT_BREAKER_OPEN,
                f"{descriptor.display_name} is temporarily unavailable",
                provider=name,
                model=model,
            )

        conversation_key = request.conversation_id or DEFAULT_CONVERSATION_KEY
        if not self.limiter_for(descriptor).can_make_request(conversation_key):
            return GenerationResult.failure(
                ErrorKind.RATE_LIMIT_EXCEEDED,
                f"more than {settings.rate_limit_per_minute} requests per minute",
                provider=name,
                model=model,
            )

        call = self._build_call(descriptor, request, model)
        self.logger.info(
            "generation_started",
            provider=name,
            model=model,
            workspace_id=request.workspace_id,
            conversation_id=request.conversation_id,
            temperature=call.temperature,
            max_tokens=call.max_tokens,
        )

        def _on_retry(attempt: int, delay: float, info: ErrorInfo, exc: Exception) -> None:
            self.logger.warning(
                "provider_retry",
                provider=name,
                attempt=attempt,
                delay_ms=round(delay * 1000, 2),
                error=compact_error_summary(exc),
                retryable=info.retryable,
                conversation_id=request.conversation_id,
            )

        try:
            reply: ProviderReply = await run_with_retries(
                lambda: adapter.generate(call),
                policy=RetryPolicy(max_retries=settings.max_retries, backoff_ms=settings.backoff_ms),
                category="provider",
                component=name,
                sleep=self._sleep,
                on_retry=_on_retry,
            )
        except ProviderUnavailableError as exc:
            self.logger.error("provider_unavailable", provider=name, error=str(exc))
            return GenerationResult.failure(ErrorKind.PROVIDER_UNAVAILABLE, str(exc), provider=name, model=model)
        except InvalidResponseError as exc:
            breaker.record_failure()
            self.logger.error("provider_invalid_response", provider=name, error=str(exc))
            return GenerationResult.failure(ErrorKind.INVALID_RESPONSE, str(exc), provider=name, model=model)
        except Exception as exc:  # noqa: BLE001
            breaker.record_failure()
            self.logger.error("provider_error", provider=name, error=compact_error_summary(exc))
            return GenerationResult.failure(
                ErrorKind.PROVIDER_ERROR, str(exc) or exc.__class__.__name__, provider=name, model=model
            )

        breaker.record_success()
        cleaned = sanitize(reply.text, settings.max_output_length)
        usage = self.meter.measure(
            model=model,
            prompt_text=self._prompt_text(call),
            output_text=cleaned.text,
            reported_in=reply.tokens_in,
            reported_out=reply.tokens_out,
            priced=not descriptor.self_hosted,
        )
        return GenerationResult(
            ok=True,
            provider=name,
            model=model,
            text=cleaned.text,
            structured_payload=cleaned.structured_payload,
            usage=usage,
        )
