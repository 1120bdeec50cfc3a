from __future__ import annotations

from suggestgate.core.providers.base import ProviderCall
from suggestgate.core.providers.openai_compatible import OpenAICompatibleAdapter

# Groq rejects requests carrying more than four stop sequences.
_MAX_STOP_SEQUENCES = 4


class GroqAdapter(OpenAICompatibleAdapter):
    name = "groq"
    prompt_style = "chat"
    completions_path = "/chat/completions"
    health_path = "/models"

    def _payload(self, call: ProviderCall) -> dict:
        payload = super()._payload(call)
        if "stop" in payload:
            payload["stop"] = payload["stop"][:_MAX_STOP_SEQUENCES]
        return payload
