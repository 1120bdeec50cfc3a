from __future__ import annotations

from typing import Any

from suggestgate.core.providers.openai_compatible import OpenAICompatibleAdapter


class LMStudioAdapter(OpenAICompatibleAdapter):
    """Self-hosted LM Studio server; takes a flat guard-railed prompt."""

    name = "lmstudio"
    prompt_style = "completion"
    completions_path = "/v1/completions"
    health_path = "/v1/models"

    def _health_detail(self, body: Any) -> str | None:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            return None
        loaded = [str(item["id"]) for item in data if isinstance(item, dict) and item.get("id")]
        return "models: " + ", ".join(loaded) if loaded else "no models loaded"
