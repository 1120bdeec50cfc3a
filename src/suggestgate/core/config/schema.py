from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class RuntimeConfig(BaseModel):
    default_max_latency_ms: int | None = None
    health_timeout_seconds: float = 5.0
    rate_limiter_max_keys: int = 10_000
    default_temperature: float = 0.3
    default_max_tokens: int = 150


class TelemetryConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = True
    usage_history: int = 500


class ProviderConfig(BaseModel):
    enabled: bool = False
    display_name: str = ""
    base_url: str | None = None
    base_url_env: str | None = None
    api_key_env: str | None = None
    requires_api_key: bool = True
    enabled_env: str | None = None
    self_hosted: bool = False
    default_model: str = ""
    models: list[str] = Field(default_factory=list)
    timeout_seconds: float = 2.0
    max_retries: int = Field(default=1, ge=0, le=10)
    backoff_ms: int = Field(default=250, ge=0)
    max_tokens_out: int = Field(default=150, ge=1)
    max_output_length: int = Field(default=500, ge=1)
    rate_limit_per_minute: int = Field(default=6, ge=1)
    error_rate_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    min_sample: int = Field(default=5, ge=1)
    cooldown_ms: int = Field(default=300_000, ge=0)
    stop: list[str] = Field(default_factory=list)


def _openai_defaults() -> ProviderConfig:
    return ProviderConfig(
        enabled=True,
        display_name="OpenAI",
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        default_model="gpt-4o-mini",
        models=["gpt-4o-mini", "gpt-4o", "gpt-3.5-turbo"],
    )


def _groq_defaults() -> ProviderConfig:
    return ProviderConfig(
        enabled=False,
        display_name="Groq",
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
        default_model="llama-3.1-8b-instant",
        models=["llama-3.1-8b-instant", "llama-3.3-70b-versatile"],
        timeout_seconds=5.0,
    )


def _lmstudio_defaults() -> ProviderConfig:
    return ProviderConfig(
        enabled=True,
        display_name="LM Studio",
        base_url="http://localhost:1234",
        base_url_env="LLM_STUDIO_URL",
        requires_api_key=False,
        enabled_env="LM_STUDIO_ENABLED",
        self_hosted=True,
        default_model="gpt-oss-20b",
        models=["gpt-oss-20b", "llama-3.1-8b", "mistral-7b", "codellama-7b"],
        timeout_seconds=10.0,
        max_retries=2,
        backoff_ms=500,
        max_tokens_out=500,
        max_output_length=2000,
        rate_limit_per_minute=10,
        error_rate_threshold=0.2,
        cooldown_ms=30_000,
        stop=["\n\n", "Human:", "Assistant:"],
    )


def _anthropic_defaults() -> ProviderConfig:
    return ProviderConfig(
        display_name="Anthropic",
        api_key_env="ANTHROPIC_API_KEY",
        default_model="claude-3-haiku",
        models=["claude-3-haiku", "claude-3-sonnet", "claude-3-opus"],
    )


def _gemini_defaults() -> ProviderConfig:
    return ProviderConfig(
        display_name="Google Gemini",
        api_key_env="GEMINI_API_KEY",
        default_model="gemini-1.5-flash",
        models=["gemini-1.5-flash", "gemini-1.5-pro"],
    )


class ProvidersConfig(BaseModel):
    fallback_order: list[str] = Field(default_factory=lambda: ["openai", "groq", "lmstudio", "anthropic", "gemini"])
    openai: ProviderConfig = Field(default_factory=_openai_defaults)
    groq: ProviderConfig = Field(default_factory=_groq_defaults)
    lmstudio: ProviderConfig = Field(default_factory=_lmstudio_defaults)
    anthropic: ProviderConfig = Field(default_factory=_anthropic_defaults)
    gemini: ProviderConfig = Field(default_factory=_gemini_defaults)

    def as_mapping(self) -> dict[str, ProviderConfig]:
        catalog = {
            "openai": self.openai,
            "groq": self.groq,
            "lmstudio": self.lmstudio,
            "anthropic": self.anthropic,
            "gemini": self.gemini,
        }
        ordered = [n for n in self.fallback_order if n in catalog]
        ordered += [n for n in catalog if n not in ordered]
        return {n: catalog[n] for n in ordered}


class ModelPrice(BaseModel):
    input: float = Field(ge=0.0)
    output: float = Field(ge=0.0)


def _default_pricing() -> dict[str, ModelPrice]:
    # USD per 1K tokens
    table = {
        "gpt-4o-mini": (0.00015, 0.0006),
        "gpt-4o": (0.005, 0.015),
        "gpt-3.5-turbo": (0.0005, 0.0015),
        "gpt-4": (0.03, 0.06),
        "gpt-4-turbo": (0.01, 0.03),
        "claude-3-sonnet": (0.003, 0.015),
        "claude-3-haiku": (0.00025, 0.00125),
        "gemini-pro": (0.0005, 0.0015),
    }
    return {model: ModelPrice(input=i, output=o) for model, (i, o) in table.items()}


class AppConfig(BaseModel):
    environment: str = "dev"
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    pricing: dict[str, ModelPrice] = Field(default_factory=_default_pricing)

    @field_validator("pricing")
    @classmethod
    def _strip_model_names(cls, value: dict[str, ModelPrice]) -> dict[str, ModelPrice]:
        return {k.strip(): v for k, v in value.items() if k.strip()}
