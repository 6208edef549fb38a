"""Delimiting and escaping of untrusted content embedded in prompts."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

CONTENT_START_DELIMITER = "<USER_CONTENT_START>"
CONTENT_END_DELIMITER = "<USER_CONTENT_END>"

# Matches are logged only. Business transcripts trip these regularly.
SUSPICIOUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"ignore\s+(all\s+)?(previous|above|prior)\s+instructions?", re.IGNORECASE),
    re.compile(r"disregard\s+(all\s+)?(previous|above|prior)", re.IGNORECASE),
    re.compile(r"forget\s+(everything|all)\s+(you|that)", re.IGNORECASE),
    re.compile(r"new\s+instructions?:\s*", re.IGNORECASE),
    re.compile(r"system\s*:\s*", re.IGNORECASE),
    re.compile(r"assistant\s*:\s*", re.IGNORECASE),
    re.compile(r"human\s*:\s*", re.IGNORECASE),
    re.compile(r"</?system>", re.IGNORECASE),
    re.compile(r"\[INST\]", re.IGNORECASE),
    re.compile(r"### (Instruction|System|Human|Assistant)", re.IGNORECASE),
)

_FULLWIDTH = str.maketrans({"<": "＜", ">": "＞", "[": "［", "]": "］"})


def detect_injection_patterns(content: str) -> list[str]:
    """Return the source of every suspicious pattern found in ``content``."""

    return [pattern.pattern for pattern in SUSPICIOUS_PATTERNS if pattern.search(content)]


def escape_delimiters(content: str) -> str:
    """Swap ``< > [ ]`` for their full-width forms."""

    return content.translate(_FULLWIDTH)


def sanitize_prompt_content(content: str, content_label: str = "content") -> str:
    """Escape and wrap untrusted text so it cannot forge the prompt's delimiters.

    Never raises. Detected injection phrasings are logged at warning level and
    the content is passed through otherwise untouched.
    """

    text = content if isinstance(content, str) else str(content or "")
    suspicious = detect_injection_patterns(text)
    if suspicious:
        logger.warning(
            "prompt_security.suspicious_patterns content_label=%s patterns=%s",
            content_label,
            ", ".join(pattern[:50] for pattern in suspicious),
        )
    return f"{CONTENT_START_DELIMITER}\n{escape_delimiters(text)}\n{CONTENT_END_DELIMITER}"


def unwrap_sanitized(wrapped: str) -> str:
    """Strip exactly one wrapper layer added by :func:`sanitize_prompt_content`."""

    prefix = f"{CONTENT_START_DELIMITER}\n"
    suffix = f"\n{CONTENT_END_DELIMITER}"
    if not (wrapped.startswith(prefix) and wrapped.endswith(suffix)) or len(wrapped) < len(prefix) + len(suffix):
        raise ValueError("Content is not wrapped in sanitizer delimiters")
    return wrapped[len(prefix) : len(wrapped) - len(suffix)]
