"""Locate JSON in free-form model output and validate it per family."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from onboarding.extraction.schemas import FamilyPayload
from onboarding.extraction.types import ValidationFailure, ValidationOutcome, ValidationSuccess

logger = logging.getLogger(__name__)

NO_JSON_FOUND = "Failed to extract JSON from response"

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```", re.IGNORECASE)
_MISSING = object()


def extract_json(text: str) -> Any | None:
    """Return the first parseable JSON value found in ``text``.

    Tries a fenced code block first, then the widest ``{...}`` and ``[...]``
    spans, largest first. Returns ``None`` when none parses.
    """

    value = _extract(text, allow_arrays=True)
    return None if value is _MISSING else value


def recover_json_object(text: str) -> dict[str, Any] | None:
    """Permissive recovery: find a JSON object and parse it with no schema checks."""

    value = _extract(text, allow_arrays=False)
    return value if isinstance(value, dict) else None


def validate_response(raw_text: str, schema: type[FamilyPayload]) -> ValidationOutcome:
    """Validate raw model output against a family schema. All or nothing."""

    parsed = extract_json(raw_text or "")
    if parsed is None:
        return ValidationFailure(reason=NO_JSON_FOUND, json_found=False)
    try:
        payload = schema.model_validate(parsed)
    except ValidationError as exc:
        return ValidationFailure(reason=f"JSON validation failed: {_describe_validation_error(exc)}", json_found=True)

    if payload.error:
        logger.warning("extraction.model_reported_error schema=%s error=%s", schema.__name__, payload.error)
    if payload.warnings:
        logger.warning(
            "extraction.model_reported_warnings schema=%s warnings=%s",
            schema.__name__,
            "; ".join(payload.warnings),
        )
    return ValidationSuccess(payload=payload)


def _extract(text: str, *, allow_arrays: bool) -> Any:
    if not text:
        return _MISSING
    for match in _FENCED_BLOCK_RE.finditer(text):
        value = _loads(match.group(1).strip())
        if value is not _MISSING and (allow_arrays or isinstance(value, dict)):
            return value

    spans: list[tuple[int, int]] = []
    brace_span = _widest_span(text, "{", "}")
    if brace_span is not None:
        spans.append(brace_span)
    if allow_arrays:
        bracket_span = _widest_span(text, "[", "]")
        if bracket_span is not None:
            spans.append(bracket_span)
    for start, end in sorted(spans, key=lambda span: (span[0] - span[1], span[0])):
        value = _loads(text[start : end + 1])
        if value is not _MISSING:
            return value
    return _MISSING


def _widest_span(text: str, opener: str, closer: str) -> tuple[int, int] | None:
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    return start, end


def _loads(candidate: str) -> Any:
    if not candidate:
        return _MISSING
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return _MISSING


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)
