"""Guard-railed prompt construction for reply suggestions.

Everything here is pure: identical inputs always produce identical text.
"""

from __future__ import annotations

from collections.abc import Sequence

from suggestgate.core.providers.base import ChatMessage, PromptPolicy

SYSTEM_PREAMBLE = (
    "You are a professional customer-support assistant for a business messaging system. "
    "You draft reply suggestions that a human agent reviews before sending."
)

_ROLE_ALIASES = {
    "customer": "user",
    "client": "user",
    "contact": "user",
    "user": "user",
    "agent": "assistant",
    "assistant": "assistant",
    "bot": "assistant",
    "system": "system",
}


def render_guardrails(policy: PromptPolicy, max_tokens: int) -> str:
    return "\n".join(
        [
            "Write a suggested reply that is:",
            f"- {policy.tone} and friendly in tone",
            f"- written in {policy.language}",
            "- relevant to the conversation",
            f"- at most {max_tokens} tokens long",
            "",
            "GUARDRAILS:",
            "- Respond directly to the latest message; do not invent conversation turns or context.",
            "- Never invent prices, products, services or any fact that is not in the conversation.",
            "- If important information is missing, ask for exactly ONE specific detail.",
            "- Avoid complex technical language.",
            "- Be concise but complete.",
        ]
    )


def _transcript(context_messages: Sequence[ChatMessage]) -> str:
    if not context_messages:
        return "(no previous messages)"
    return "\n".join(f"{m.role}: {m.content}" for m in context_messages)


def build_prompt(context_messages: Sequence[ChatMessage], policy: PromptPolicy, max_tokens: int) -> str:
    latest = context_messages[-1].content if context_messages else "N/A"
    return "\n".join(
        [
            SYSTEM_PREAMBLE,
            "",
            "CONVERSATION:",
            _transcript(context_messages),
            "",
            f'Latest message: "{latest}"',
            "",
            render_guardrails(policy, max_tokens),
            "",
            "Suggested reply:",
        ]
    )


def build_messages(
    context_messages: Sequence[ChatMessage], policy: PromptPolicy, max_tokens: int
) -> list[ChatMessage]:
    """Structured form of ``build_prompt`` for chat-style providers."""
    system = ChatMessage(role="system", content=f"{SYSTEM_PREAMBLE}\n\n{render_guardrails(policy, max_tokens)}")
    turns = [
        ChatMessage(role=_ROLE_ALIASES.get(m.role.strip().lower(), "user"), content=m.content)
        for m in context_messages
    ]
    return [system, *turns]
