from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from suggestgate.core.config.schema import ProviderConfig
from suggestgate.core.runtime.errors import ErrorKind


@dataclass(slots=True, frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass(slots=True, frozen=True)
class PromptPolicy:
    tone: str = "professional"
    language: str = "English"


@dataclass(slots=True)
class GenerationRequest:
    prompt: str | None = None
    context_messages: list[ChatMessage] = field(default_factory=list)
    policy: PromptPolicy = field(default_factory=PromptPolicy)
    provider_name: str | None = None
    model: str | None = None
    temperature: float = 0.3
    max_tokens: int = 150
    workspace_id: str | None = None
    conversation_id: str | None = None
    max_latency_ms: int | None = None

    def __post_init__(self) -> None:
        if not self.context_messages and not self.prompt:
            raise ValueError("GenerationRequest needs a prompt or context_messages")


@dataclass(slots=True)
class ProviderCall:
    """Outbound call after clamping; carries either ``prompt`` or ``messages``."""

    model: str
    temperature: float
    max_tokens: int
    prompt: str | None = None
    messages: list[ChatMessage] | None = None
    stop: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ProviderReply:
    text: Any
    model: str
    tokens_in: int | None = None
    tokens_out: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Usage:
    tokens_in: int = 0
    tokens_out: int = 0
    latency_ms: float = 0.0
    cost_usd: float | None = None


@dataclass(slots=True)
class GenerationResult:
    ok: bool
    provider: str | None = None
    model: str | None = None
    text: str | None = None
    structured_payload: dict[str, Any] | None = None
    usage: Usage = field(default_factory=Usage)
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        provider: str | None = None,
        model: str | None = None,
    ) -> GenerationResult:
        return cls(ok=False, provider=provider, model=model, error_kind=kind, error_message=message)


@dataclass(slots=True)
class HealthReport:
    provider: str
    ok: bool
    status: str
    detail: str | None = None
    latency_ms: float | None = None


class ProviderAdapter(ABC):
    name: str
    # "chat" adapters take structured messages, "completion" adapters a flat prompt.
    prompt_style: str = "chat"

    def __init__(self, settings: ProviderConfig) -> None:
        self.settings = settings

    @abstractmethod
    async def generate(self, call: ProviderCall) -> ProviderReply:
        raise NotImplementedError

    @abstractmethod
    async def health(self) -> HealthReport:
        raise NotImplementedError

    def rebind_env(self, env: Mapping[str, str]) -> None:
        """Pick up credentials or endpoints that changed in ``env``."""

    def stats(self) -> dict[str, Any]:
        return {"prompt_style": self.prompt_style}


@dataclass(slots=True)
class ProviderDescriptor:
    name: str
    display_name: str
    default_model: str
    supported_models: tuple[str, ...]
    settings: ProviderConfig
    adapter: ProviderAdapter | None = None
    is_enabled: bool = False
    init_error: str | None = None

    @property
    def self_hosted(self) -> bool:
        return self.settings.self_hosted

    @property
    def available(self) -> bool:
        return self.is_enabled and self.adapter is not None
