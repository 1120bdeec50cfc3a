from __future__ import annotations

import pytest

from suggestgate.core.config.schema import AppConfig, ProviderConfig
from suggestgate.core.providers.base import HealthReport, ProviderAdapter, ProviderCall, ProviderDescriptor, ProviderReply
from suggestgate.core.providers.registry import ProviderRegistry, build_registry
from suggestgate.core.runtime.errors import NoProviderAvailable


class StubAdapter(ProviderAdapter):
    def __init__(self, name: str) -> None:
        super().__init__(ProviderConfig())
        self.name = name

    async def generate(self, call: ProviderCall) -> ProviderReply:
        return ProviderReply(text="ok", model=call.model)

    async def health(self) -> HealthReport:
        return HealthReport(provider=self.name, ok=True, status="healthy")


def _descriptor(name: str, *, enabled: bool = True, implemented: bool = True, self_hosted: bool = False):
    return ProviderDescriptor(
        name=name,
        display_name=name.title(),
        default_model=f"{name}-default",
        supported_models=(f"{name}-default",),
        settings=ProviderConfig(enabled=enabled, self_hosted=self_hosted),
        adapter=StubAdapter(name) if implemented else None,
        is_enabled=enabled and implemented,
    )


def test_resolve_returns_requested_when_available():
    registry = ProviderRegistry([_descriptor("openai"), _descriptor("groq")])
    assert registry.resolve("groq").name == "groq"


def test_resolve_prefers_self_hosted_fallback():
    registry = ProviderRegistry(
        [
            _descriptor("openai"),
            _descriptor("anthropic", implemented=False),
            _descriptor("lmstudio", self_hosted=True),
        ]
    )
    assert registry.resolve("anthropic").name == "lmstudio"
    assert registry.resolve(None).name == "lmstudio"
    assert registry.resolve("nope").name == "lmstudio"


def test_resolve_falls_back_to_first_enabled_without_local():
    registry = ProviderRegistry(
        [
            _descriptor("openai", enabled=False),
            _descriptor("groq"),
            _descriptor("lmstudio", self_hosted=True, enabled=False),
        ]
    )
    assert registry.resolve("openai").name == "groq"
    assert registry.recommended().name == "groq"


def test_resolve_raises_when_nothing_enabled():
    registry = ProviderRegistry([_descriptor("openai", enabled=False), _descriptor("gemini", implemented=False)])
    with pytest.raises(NoProviderAvailable):
        registry.resolve("openai")


def test_build_registry_enabled_predicate_from_env():
    cfg = AppConfig()
    env = {"OPENAI_API_KEY": "sk-test"}
    registry = build_registry(cfg, env=env)

    assert registry.is_available("openai")
    assert not registry.is_available("lmstudio")
    assert not registry.is_available("groq")
    assert registry.get("anthropic").adapter is None
    assert registry.recommended().name == "openai"

    registry.refresh({"OPENAI_API_KEY": "sk-test", "LM_STUDIO_ENABLED": "true"})
    assert registry.is_available("lmstudio")
    assert registry.recommended().name == "lmstudio"


def test_missing_credentials_disable_only_that_provider():
    cfg = AppConfig()
    registry = build_registry(cfg, env={"LM_STUDIO_ENABLED": "true"})
    assert not registry.is_available("openai")
    assert [d.name for d in registry.available()] == ["lmstudio"]


def test_adapter_init_failure_is_recorded_not_raised():
    cfg = AppConfig()
    cfg.providers.lmstudio.base_url = None
    registry = build_registry(cfg, env={"LM_STUDIO_ENABLED": "true"})
    lm = registry.get("lmstudio")
    assert lm.adapter is None
    assert lm.init_error
    assert not lm.is_enabled


def test_refresh_disables_provider_whose_endpoint_disappears():
    cfg = AppConfig()
    cfg.providers.lmstudio.base_url = None
    registry = build_registry(cfg, env={"LM_STUDIO_ENABLED": "true", "LLM_STUDIO_URL": "http://gpu-box:1234"})
    assert registry.is_available("lmstudio")

    registry.refresh({"LM_STUDIO_ENABLED": "true"})
    assert not registry.is_available("lmstudio")
    assert registry.get("lmstudio").adapter.base_url == "http://gpu-box:1234"
