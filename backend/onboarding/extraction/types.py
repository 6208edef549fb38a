"""Typed extraction inputs and outputs independent of persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel


class ExtractionFamily(str, Enum):
    """Session categories that each drive a prompt/schema pair."""

    KICKOFF = "kickoff"
    PROCESS = "process"
    SKILLS_GUARDRAILS = "skills_guardrails"
    TECHNICAL = "technical"
    SIGNOFF = "signoff"
    PERSONA = "persona"


LEGACY_FAMILY_KEY = "legacy"

ContentType = Literal["audio", "video", "document", "transcript"]
CONTENT_TYPES: tuple[str, ...] = ("audio", "video", "document", "transcript")

_SESSION_PHASE_FAMILIES: dict[int, ExtractionFamily] = {
    1: ExtractionFamily.KICKOFF,
    2: ExtractionFamily.PROCESS,
    3: ExtractionFamily.SKILLS_GUARDRAILS,
    4: ExtractionFamily.TECHNICAL,
    5: ExtractionFamily.TECHNICAL,
    6: ExtractionFamily.SIGNOFF,
    7: ExtractionFamily.PERSONA,
}


def parse_family(key: str | ExtractionFamily | None) -> ExtractionFamily | None:
    """Return the matching family, or ``None`` when the key is not recognized."""

    if isinstance(key, ExtractionFamily):
        return key
    if not key:
        return None
    try:
        return ExtractionFamily(str(key).strip().lower())
    except ValueError:
        return None


def family_for_session_phase(phase: int | None) -> ExtractionFamily | None:
    """Map a design-week session phase (1-7) to its extraction family."""

    if phase is None:
        return None
    return _SESSION_PHASE_FAMILIES.get(phase)


@dataclass(slots=True)
class ExtractionRequest:
    """Input to one pipeline invocation."""

    content: bytes | str
    content_type: ContentType
    family: str | None
    mime_type: str | None = None


@dataclass(slots=True)
class ExtractedItem:
    """One structured fact pulled out of a session."""

    type: str
    content: str
    confidence: float
    category: str | None = None
    structured_data: dict[str, Any] = field(default_factory=dict)
    source_quote: str | None = None
    source_speaker: str | None = None
    source_timestamp: float | None = None
    source_locator: str | None = None


@dataclass(slots=True)
class ValidationSuccess:
    """Schema-conformant model output."""

    payload: BaseModel
    ok: Literal[True] = True


@dataclass(slots=True)
class ValidationFailure:
    """Model output that could not be validated, with a readable reason."""

    reason: str
    json_found: bool
    ok: Literal[False] = False


ValidationOutcome = ValidationSuccess | ValidationFailure


@dataclass(slots=True)
class ExtractionResult:
    """Container for pipeline outputs.

    ``validated`` is false when the payload came from permissive recovery;
    such results are lower-trust than validated ones.
    """

    family: str | None
    content_type: str
    payload: dict[str, Any]
    items: list[ExtractedItem] = field(default_factory=list)
    validated: bool = True
    dropped_item_count: int = 0
    model: str = ""
    pipeline_name: str = ""
    prompt_tier: str = "static"
    prompt_template_id: int | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    model_error: str | None = None
    model_warnings: list[str] = field(default_factory=list)

    @property
    def fallback(self) -> bool:
        return not self.validated
