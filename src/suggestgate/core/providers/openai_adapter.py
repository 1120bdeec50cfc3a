from __future__ import annotations

from suggestgate.core.providers.openai_compatible import OpenAICompatibleAdapter


class OpenAIAdapter(OpenAICompatibleAdapter):
    name = "openai"
    prompt_style = "chat"
    completions_path = "/chat/completions"
    health_path = "/models"
