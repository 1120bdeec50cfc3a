from __future__ import annotations

from suggestgate.core.config.schema import AppConfig, ModelPrice
from suggestgate.core.telemetry.usage import UsageMeter, estimate_tokens


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_reported_usage_wins_over_estimate():
    meter = UsageMeter({"gpt-4o-mini": ModelPrice(input=0.00015, output=0.0006)})
    usage = meter.measure(model="gpt-4o-mini", prompt_text="x" * 400, output_text="y", reported_in=1000, reported_out=2000)
    assert usage.tokens_in == 1000
    assert usage.tokens_out == 2000
    assert usage.cost_usd == round(0.00015 + 2 * 0.0006, 6)


def test_estimates_when_provider_reports_nothing():
    meter = UsageMeter({"gpt-4o": ModelPrice(input=0.005, output=0.015)})
    usage = meter.measure(model="gpt-4o", prompt_text="x" * 10, output_text="y" * 3)
    assert usage.tokens_in == 3
    assert usage.tokens_out == 1


def test_self_hosted_has_no_cost():
    meter = UsageMeter(AppConfig().pricing)
    usage = meter.measure(model="gpt-oss-20b", prompt_text="abc", output_text="abc", priced=False)
    assert usage.cost_usd is None


def test_unknown_model_has_no_cost():
    assert UsageMeter({}).estimate_cost("mystery", 10, 10) is None
