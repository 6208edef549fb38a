"""Extraction error taxonomy and provider error classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_MAX_SANITIZED_LENGTH = 200
_CREDENTIAL_RE = re.compile(r"(?:key|token|api[_-]?key)[=:\s]+\S+", re.IGNORECASE)
_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)


class ErrorCategory(str, Enum):
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    UNCLASSIFIED = "unclassified"


class ExtractionError(RuntimeError):
    """Base class for failures surfaced by the extraction pipeline."""


class ProviderError(ExtractionError):
    """Provider call failed. The message is safe to show to users."""

    def __init__(self, user_message: str, *, retryable: bool, category: ErrorCategory) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.retryable = retryable
        self.category = category


class ResponseParseError(ExtractionError):
    """No JSON could be located in the model response."""


class ProviderCallError(RuntimeError):
    """Raised by provider clients; carries the raw, unsanitized failure text."""


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    user_message: str
    retryable: bool
    category: ErrorCategory


# First match wins, in this order.
_SIGNATURES: tuple[tuple[ErrorCategory, tuple[str, ...], bool, str], ...] = (
    (
        ErrorCategory.RATE_LIMIT,
        ("429", "rate limit", "resource exhausted", "resource_exhausted", "quota", "too many requests"),
        True,
        "{provider} rate limit reached. Please wait a moment and try again.",
    ),
    (
        ErrorCategory.AUTHENTICATION,
        ("401", "403", "unauthorized", "forbidden", "invalid api key", "authentication", "permission denied"),
        False,
        "{provider} authentication failed. Please verify the API key configuration.",
    ),
    (
        ErrorCategory.TIMEOUT,
        ("timeout", "timed out", "deadline exceeded", "deadline_exceeded", "econnaborted", "socket hang up"),
        True,
        "{provider} request timed out. The content may be too large or the service is under heavy load.",
    ),
    (
        ErrorCategory.UNAVAILABLE,
        ("500", "502", "503", "529", "overloaded", "service unavailable", "temporarily unavailable"),
        True,
        "{provider} service is temporarily unavailable. Please try again shortly.",
    ),
)


def _needle_pattern(needles: tuple[str, ...]) -> re.Pattern[str]:
    # Status codes match as whole tokens only.
    parts = [rf"\b{needle}\b" if needle.isdigit() else re.escape(needle) for needle in needles]
    return re.compile("|".join(parts))


_SIGNATURE_PATTERNS = tuple(
    (category, _needle_pattern(needles), retryable, template) for category, needles, retryable, template in _SIGNATURES
)


def classify_provider_error(error: object, provider: str = "Model provider") -> ClassifiedError:
    """Map a provider failure to a short, credential-free message and retry hint.

    Never raises.
    """

    if not isinstance(error, BaseException):
        return ClassifiedError(
            user_message=f"An unexpected error occurred during {provider} processing.",
            retryable=False,
            category=ErrorCategory.UNCLASSIFIED,
        )

    raw_message = str(error)
    lowered = raw_message.lower()
    for category, pattern, retryable, template in _SIGNATURE_PATTERNS:
        if pattern.search(lowered):
            return ClassifiedError(
                user_message=template.format(provider=provider),
                retryable=retryable,
                category=category,
            )
    return ClassifiedError(
        user_message=f"{provider} processing error: {sanitize_error_message(raw_message)}",
        retryable=False,
        category=ErrorCategory.UNCLASSIFIED,
    )


def sanitize_error_message(message: str) -> str:
    """Strip key/token-like substrings and URLs, then cap at 200 characters."""

    sanitized = _CREDENTIAL_RE.sub("[redacted]", message or "")
    sanitized = _URL_RE.sub("[service-url]", sanitized)
    if len(sanitized) > _MAX_SANITIZED_LENGTH:
        sanitized = sanitized[: _MAX_SANITIZED_LENGTH - 3] + "..."
    return sanitized
