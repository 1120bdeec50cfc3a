from __future__ import annotations

import asyncio

from suggestgate.cli import base_parser
from suggestgate.core.config.loader import load_app_config
from suggestgate.core.providers.base import ChatMessage, GenerationRequest
from suggestgate.core.providers.gateway import ProviderGateway, build_gateway
from suggestgate.core.telemetry.logging import configure_logging


async def _generate(gateway: ProviderGateway, args, cfg) -> int:
    request = GenerationRequest(
        context_messages=[ChatMessage(role="customer", content=args.generate)],
        provider_name=args.provider,
        temperature=cfg.runtime.default_temperature,
        max_tokens=cfg.runtime.default_max_tokens,
        workspace_id="diagnostics",
        conversation_id=args.conversation,
    )
    result = await gateway.generate(request)
    print("generation:")
    print(f"- provider={result.provider} model={result.model} ok={result.ok}")
    if result.ok:
        print(f"- text={result.text}")
        if result.structured_payload is not None:
            print(f"- structured_payload={result.structured_payload}")
    else:
        print(f"- error_kind={result.error_kind.value} error={result.error_message}")
    u = result.usage
    print(f"- tokens_in={u.tokens_in} tokens_out={u.tokens_out} latency_ms={u.latency_ms} cost_usd={u.cost_usd}")
    return 0 if result.ok else 2


def main() -> int:
    parser = base_parser("suggestgate-diag", "suggestgate provider diagnostics")
    parser.add_argument("--config", default=None, help="Config file path")
    parser.add_argument("--validate-config", action="store_true")
    parser.add_argument("--list-providers", action="store_true")
    parser.add_argument("--check-providers", action="store_true")
    parser.add_argument("--stats", action="store_true")
    parser.add_argument("--generate", default=None, metavar="TEXT", help="Suggest a reply to TEXT")
    parser.add_argument("--provider", default=None, help="Provider to request for --generate")
    parser.add_argument("--conversation", default="diagnostics", help="Conversation id for --generate")
    args = parser.parse_args()

    needs_cfg = any([args.validate_config, args.list_providers, args.check_providers, args.stats, args.generate])
    if not needs_cfg:
        print("diag-ready (use --validate-config/--list-providers/--check-providers/--stats/--generate)")
        return 0

    try:
        cfg = load_app_config(instance_path=args.config)
    except Exception as exc:  # noqa: BLE001
        print(f"config-invalid error={exc}")
        return 1
    configure_logging(cfg.telemetry.log_level, cfg.telemetry.json_logs)
    if args.validate_config:
        enabled = [name for name, p in cfg.providers.as_mapping().items() if p.enabled]
        print(f"config-valid env={cfg.environment} enabled_providers={enabled}")

    gateway = build_gateway(cfg)
    rc = 0

    if args.list_providers:
        print("providers:")
        providers = gateway.available_providers()
        if not providers:
            print("- none")
        for p in providers:
            print(f"- {p['name']}: display_name={p['display_name']} default_model={p['default_model']}")

    if args.check_providers:
        health = asyncio.run(gateway.check_health())
        print(f"provider-health: status={health['status']} recommended={health['recommended']}")
        for name, report in health["providers"].items():
            print(
                f"- {name}: ok={report.ok} status={report.status} "
                f"latency_ms={report.latency_ms} detail={report.detail}"
            )

    if args.stats:
        print("provider-stats:")
        for name, st in gateway.get_stats().items():
            breaker = st["circuit_breaker"]
            print(
                f"- {name}: breaker_open={breaker['is_open']} failures={breaker['failure_count']} "
                f"successes={breaker['success_count']} rate_limit={st['config']['rate_limit_per_minute']}/min "
                f"tracked_conversations={st['rate_limiter']['tracked_keys']}"
            )

    if args.generate:
        rc = asyncio.run(_generate(gateway, args, cfg))
    return rc


if __name__ == "__main__":
    raise SystemExit(main())
