from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    CIRCUIT_BREAKER_OPEN = "CIRCUIT_BREAKER_OPEN"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    TIMEOUT = "TIMEOUT"


class ProviderError(Exception):
    kind: ErrorKind = ErrorKind.PROVIDER_ERROR

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    """Missing credentials or a client that could not be initialised."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE


class InvalidResponseError(ProviderError):
    """The provider answered, but the payload could not be understood."""

    kind = ErrorKind.INVALID_RESPONSE


class NoProviderAvailable(ProviderError):
    kind = ErrorKind.PROVIDER_UNAVAILABLE


@dataclass(slots=True)
class ErrorInfo:
    category: str
    component: str
    error_type: str
    message_signature: str
    retryable: bool
    http_status: int | None = None


def _normalize_message(message: str, max_len: int = 180) -> str:
    msg = message.lower()
    msg = re.sub(r"\s+", " ", msg)
    msg = re.sub(r"\d+", "#", msg)
    return msg.strip()[:max_len]


def _compact_message(message: str, max_len: int = 220) -> str:
    msg = re.sub(r"\s+", " ", message)
    return msg.strip()[:max_len]


def _status_from(exc: Exception, lowered: str) -> int | None:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    m = re.search(r"\b(4\d\d|5\d\d)\b", lowered)
    return int(m.group(1)) if m else None


def classify_error(exc: Exception, *, category: str, component: str) -> ErrorInfo:
    name = exc.__class__.__name__.lower()
    msg = str(exc)
    normalized = _normalize_message(msg)

    retryable = True
    lowered = f"{name} {msg.lower()}"
    if isinstance(exc, (ProviderUnavailableError, InvalidResponseError)):
        retryable = False
    elif any(k in lowered for k in ["auth", "unauthorized", "forbidden", "invalidrequest", "badrequest", "permission"]):
        retryable = False
    if any(k in lowered for k in ["timeout", "temporar", "connection", "reset", "unavailable"]) and not isinstance(
        exc, ProviderError
    ):
        retryable = True

    status = _status_from(exc, lowered)
    if status is not None:
        if 400 <= status < 500 and status not in {408, 429}:
            retryable = False
        elif status >= 500 or status in {408, 429}:
            retryable = True

    return ErrorInfo(
        category=category,
        component=component,
        error_type=exc.__class__.__name__,
        message_signature=normalized,
        retryable=retryable,
        http_status=status,
    )


def compact_error_summary(exc: Exception, max_len: int = 220) -> str:
    return f"{exc.__class__.__name__}: {_compact_message(str(exc), max_len=max_len)}"
