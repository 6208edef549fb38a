"""Confidence thresholds applied to extracted items."""

from __future__ import annotations

from collections.abc import Iterable

from onboarding.extraction.types import ExtractedItem

CONFIDENCE_THRESHOLD = 0.50
AUTO_APPROVE_THRESHOLD = 0.80

REVIEW_STATUS_APPROVED = "APPROVED"
REVIEW_STATUS_PENDING = "PENDING"


def filter_by_confidence(
    items: Iterable[ExtractedItem],
    threshold: float = CONFIDENCE_THRESHOLD,
) -> tuple[list[ExtractedItem], int]:
    """Drop items below ``threshold``; return kept items and the dropped count."""

    kept: list[ExtractedItem] = []
    dropped = 0
    for item in items:
        confidence = max(0.0, min(1.0, float(item.confidence)))
        if confidence < threshold:
            dropped += 1
            continue
        item.confidence = confidence
        kept.append(item)
    return kept, dropped


def initial_review_status(confidence: float, *, validated: bool) -> str:
    """Starting review status for a persisted item. Unvalidated items always wait for review."""

    if validated and confidence >= AUTO_APPROVE_THRESHOLD:
        return REVIEW_STATUS_APPROVED
    return REVIEW_STATUS_PENDING
