"""Best-effort cleanup of generated text.

Pattern based, not a markup parser: output must still be treated as untrusted
when rendered. A vetted HTML sanitizer can replace ``strip_unsafe_markup``
without touching callers.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from suggestgate.core.telemetry.logging import get_logger

logger = get_logger("suggestgate.sanitizer")

FALLBACK_TEXT = "Sorry, no valid suggestion could be generated for this message."

_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_IFRAME_BLOCK = re.compile(r"<iframe\b[^>]*>.*?</iframe\s*>", re.IGNORECASE | re.DOTALL)
# Unterminated or stray openers, e.g. left behind by truncation.
_DANGLING_TAG = re.compile(r"</?(?:script|iframe)[^>]*>?", re.IGNORECASE)
_JS_URI = re.compile(r"javascript\s*:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"\bon[a-z]+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]*)", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_PATTERNS = (_CONTROL_CHARS, _SCRIPT_BLOCK, _IFRAME_BLOCK, _DANGLING_TAG, _JS_URI, _EVENT_HANDLER)


@dataclass(slots=True)
class SanitizedOutput:
    text: str
    structured_payload: dict[str, Any] | None = None


def strip_unsafe_markup(text: str) -> str:
    # Removing one match can splice a new one together, so repeat until stable.
    previous = None
    while previous != text:
        previous = text
        for pattern in _PATTERNS:
            text = pattern.sub("", text)
    return text


def extract_json_object(text: str) -> dict[str, Any] | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        value = json.loads(text[start : end + 1])
    except (ValueError, RecursionError):
        value = None
    if isinstance(value, dict):
        return value

    decoder = json.JSONDecoder()
    idx = start
    while idx != -1:
        try:
            value, _ = decoder.raw_decode(text, idx)
        except (ValueError, RecursionError):
            value = None
        if isinstance(value, dict):
            return value
        idx = text.find("{", idx + 1)

    logger.debug("structured_payload_unparseable", preview=text[:100])
    return None


def _fallback(max_output_length: int) -> SanitizedOutput:
    return SanitizedOutput(text=FALLBACK_TEXT[: max(0, max_output_length)], structured_payload=None)


def sanitize(raw_text: Any, max_output_length: int) -> SanitizedOutput:
    if not isinstance(raw_text, str) or not raw_text.strip():
        return _fallback(max_output_length)

    text = raw_text[: max(0, max_output_length)]
    text = strip_unsafe_markup(text)
    payload = extract_json_object(text)
    text = text.strip()
    if not text:
        return _fallback(max_output_length)
    return SanitizedOutput(text=text, structured_payload=payload)
