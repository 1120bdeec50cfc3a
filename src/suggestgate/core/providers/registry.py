from __future__ import annotations

import os
from collections.abc import Mapping

import httpx

from suggestgate.core.config.schema import AppConfig, ProviderConfig
from suggestgate.core.providers.base import ProviderAdapter, ProviderDescriptor
from suggestgate.core.providers.groq_adapter import GroqAdapter
from suggestgate.core.providers.lmstudio_adapter import LMStudioAdapter
from suggestgate.core.providers.openai_adapter import OpenAIAdapter
from suggestgate.core.providers.openai_compatible import OpenAICompatibleAdapter
from suggestgate.core.runtime.errors import NoProviderAvailable, ProviderUnavailableError
from suggestgate.core.telemetry.logging import get_logger

logger = get_logger("suggestgate.registry")

# Providers with an implementation. Catalogued names missing here are listed
# but never selected.
ADAPTER_CLASSES: dict[str, type[OpenAICompatibleAdapter]] = {
    "openai": OpenAIAdapter,
    "groq": GroqAdapter,
    "lmstudio": LMStudioAdapter,
}


def _flag_enabled(settings: ProviderConfig, env: Mapping[str, str]) -> bool:
    if not settings.enabled:
        return False
    if settings.enabled_env:
        return (env.get(settings.enabled_env) or "").strip().lower() == "true"
    return True


def compute_enabled(settings: ProviderConfig, env: Mapping[str, str]) -> bool:
    if not _flag_enabled(settings, env):
        return False
    if settings.requires_api_key:
        return bool(settings.api_key_env and (env.get(settings.api_key_env) or "").strip())
    return True


class ProviderRegistry:
    def __init__(self, descriptors: list[ProviderDescriptor], *, env: Mapping[str, str] | None = None) -> None:
        self._descriptors: dict[str, ProviderDescriptor] = {d.name: d for d in descriptors}
        self._env = env if env is not None else os.environ

    def descriptors(self) -> list[ProviderDescriptor]:
        return list(self._descriptors.values())

    def get(self, name: str) -> ProviderDescriptor | None:
        return self._descriptors.get(name)

    def available(self) -> list[ProviderDescriptor]:
        return [d for d in self._descriptors.values() if d.available]

    def is_available(self, name: str) -> bool:
        descriptor = self._descriptors.get(name)
        return bool(descriptor and descriptor.available)

    def refresh(self, env: Mapping[str, str] | None = None) -> None:
        if env is not None:
            self._env = env
        for d in self._descriptors.values():
            was = d.is_enabled
            rebound = d.adapter is not None
            if rebound and env is not None:
                try:
                    d.adapter.rebind_env(self._env)
                except ProviderUnavailableError as exc:
                    rebound = False
                    logger.error("provider_rebind_failed", provider=d.name, error=str(exc))
            d.is_enabled = rebound and compute_enabled(d.settings, self._env)
            if was != d.is_enabled:
                logger.info("provider_enabled_changed", provider=d.name, enabled=d.is_enabled)

    def recommended(self) -> ProviderDescriptor:
        for d in self._descriptors.values():
            if d.self_hosted and d.available:
                return d
        for d in self._descriptors.values():
            if d.available:
                return d
        raise NoProviderAvailable("no enabled provider with an adapter is configured")

    def resolve(self, name: str | None = None) -> ProviderDescriptor:
        if not name:
            reason = "not_requested"
        else:
            descriptor = self._descriptors.get(name)
            if descriptor is None:
                reason = "unknown"
            elif descriptor.adapter is None:
                reason = "not_implemented" if descriptor.init_error is None else "init_failed"
            elif not descriptor.is_enabled:
                reason = "disabled"
            else:
                return descriptor

        fallback = self.recommended()
        logger.warning("provider_fallback", requested=name, reason=reason, selected=fallback.name)
        return fallback


def build_registry(
    cfg: AppConfig,
    *,
    env: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderRegistry:
    env = env if env is not None else os.environ
    descriptors: list[ProviderDescriptor] = []
    for name, settings in cfg.providers.as_mapping().items():
        adapter: ProviderAdapter | None = None
        init_error: str | None = None
        adapter_cls = ADAPTER_CLASSES.get(name)
        if adapter_cls is not None:
            try:
                adapter = adapter_cls(settings, env=env, transport=transport)
            except Exception as exc:  # noqa: BLE001
                init_error = str(exc)
                logger.error("provider_init_failed", provider=name, error=init_error)

        descriptors.append(
            ProviderDescriptor(
                name=name,
                display_name=settings.display_name or name,
                default_model=settings.default_model,
                supported_models=tuple(settings.models),
                settings=settings,
                adapter=adapter,
                is_enabled=adapter is not None and compute_enabled(settings, env),
                init_error=init_error,
            )
        )
    return ProviderRegistry(descriptors, env=env)
