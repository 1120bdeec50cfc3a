from __future__ import annotations

import math
from collections.abc import Mapping

from suggestgate.core.config.schema import ModelPrice
from suggestgate.core.providers.base import Usage
from suggestgate.core.telemetry.logging import get_logger

logger = get_logger("suggestgate.usage")


def estimate_tokens(text: str | None) -> int:
    return math.ceil(len(text or "") / 4)


class UsageMeter:
    """Token, latency and cost accounting for one generation."""

    def __init__(self, pricing: Mapping[str, ModelPrice] | None = None) -> None:
        self.pricing = dict(pricing or {})

    def estimate_cost(self, model: str, tokens_in: int, tokens_out: int) -> float | None:
        price = self.pricing.get(model)
        if price is None:
            logger.warning("model_price_missing", model=model, tokens_in=tokens_in, tokens_out=tokens_out)
            return None
        cost = (tokens_in / 1000) * price.input + (tokens_out / 1000) * price.output
        return round(cost, 6)

    def measure(
        self,
        *,
        model: str,
        prompt_text: str,
        output_text: str,
        reported_in: int | None = None,
        reported_out: int | None = None,
        latency_ms: float = 0.0,
        priced: bool = True,
    ) -> Usage:
        tokens_in = reported_in if reported_in is not None else estimate_tokens(prompt_text)
        tokens_out = reported_out if reported_out is not None else estimate_tokens(output_text)
        cost = self.estimate_cost(model, tokens_in, tokens_out) if priced else None
        return Usage(tokens_in=tokens_in, tokens_out=tokens_out, latency_ms=round(latency_ms, 2), cost_usd=cost)
