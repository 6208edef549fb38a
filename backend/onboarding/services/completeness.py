"""Weighted completeness scoring for structured profiles."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class SectionConfig:
    """One weighted profile section.

    With no ``fields`` the section value itself is checked for emptiness.
    """

    key: str
    weight: float
    fields: tuple[str, ...] = ()


@dataclass(slots=True)
class SectionScore:
    key: str
    weight: float
    filled_ratio: float


@dataclass(slots=True)
class CompletenessReport:
    score: int
    sections: list[SectionScore] = field(default_factory=list)

    def meets(self, gate: int) -> bool:
        return self.score >= gate


def is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return any(is_filled(entry) for entry in (value.values() if isinstance(value, dict) else value))
    return True


def compute_completeness(profile: Mapping[str, Any] | None, sections: Sequence[SectionConfig]) -> CompletenessReport:
    """Score ``profile`` from 0 to 100, rounding half up to an integer."""

    profile = profile or {}
    total_weight = sum(section.weight for section in sections if section.weight > 0)
    if total_weight <= 0:
        return CompletenessReport(score=0)

    weighted = 0.0
    scores: list[SectionScore] = []
    for section in sections:
        if section.weight <= 0:
            continue
        value = profile.get(section.key)
        if section.fields:
            container = value if isinstance(value, Mapping) else {}
            filled = sum(1 for name in section.fields if is_filled(container.get(name)))
            ratio = filled / len(section.fields)
        else:
            ratio = 1.0 if is_filled(value) else 0.0
        scores.append(SectionScore(key=section.key, weight=section.weight, filled_ratio=ratio))
        weighted += ratio * section.weight

    raw = weighted / total_weight * 100
    score = max(0, min(100, math.floor(raw + 0.5)))
    return CompletenessReport(score=score, sections=scores)
