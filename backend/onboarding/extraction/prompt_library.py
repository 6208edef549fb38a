"""Default instruction templates and slot rendering."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

from onboarding.extraction.errors import ExtractionError
from onboarding.extraction.types import LEGACY_FAMILY_KEY, ExtractionFamily

_PROMPT_DIR = Path(__file__).resolve().parent / "prompts"
_PROMPT_FILES: dict[str, Path] = {
    ExtractionFamily.KICKOFF.value: _PROMPT_DIR / "kickoff.txt",
    ExtractionFamily.PROCESS.value: _PROMPT_DIR / "process.txt",
    ExtractionFamily.SKILLS_GUARDRAILS.value: _PROMPT_DIR / "skills_guardrails.txt",
    ExtractionFamily.TECHNICAL.value: _PROMPT_DIR / "technical.txt",
    ExtractionFamily.SIGNOFF.value: _PROMPT_DIR / "signoff.txt",
    ExtractionFamily.PERSONA.value: _PROMPT_DIR / "persona.txt",
    LEGACY_FAMILY_KEY: _PROMPT_DIR / "legacy.txt",
}

CONFIDENCE_SCORING_GUIDE = """CONFIDENCE SCORING:
Give every extracted item a confidence score between 0.0 and 1.0.
- 0.90-1.00: stated explicitly, with a clear quote
- 0.70-0.89: strongly implied, or stated with small ambiguity
- 0.50-0.69: inferred from context; needs confirmation
- below 0.50: do not include the item
Be conservative: a lower score that is right beats a high score that is wrong."""

PII_HANDLING_GUIDE = """PERSONAL DATA:
- Names and job titles of stakeholders: extract as given
- Work email addresses: extract when provided in a business context
- Personal phone numbers or addresses: do not extract
- Customer or citizen data mentioned as an example: replace with [CUSTOMER]
- Credentials, passwords and API keys: never extract"""

ERROR_RECOVERY_GUIDE = """WHEN SIGNAL IS WEAK:
- Audio unclear or content incomplete: extract what you can, lower the confidence, and add a note to "warnings"
- The session does not match the expected type: set "error" to a short explanation and still return the JSON structure with empty arrays
- Conflicting statements: extract both, lower their confidence, and explain the conflict in "warnings"
Always return valid JSON, even when nothing could be extracted."""

_GUIDE_SLOTS: dict[str, str] = {
    "confidence_guide": CONFIDENCE_SCORING_GUIDE,
    "pii_guide": PII_HANDLING_GUIDE,
    "error_recovery_guide": ERROR_RECOVERY_GUIDE,
}

_CONTENT_NOUNS: dict[str, tuple[str, str]] = {
    "audio": ("recording", "timestamp"),
    "video": ("recording", "timestamp"),
    "document": ("document", "page/paragraph"),
    "transcript": ("transcript", "timestamp"),
}

_SLOT_RE = re.compile(r"\{\{\s*([a-z_]+)\s*\}\}")


def slot_values(content_type: str | None) -> dict[str, str]:
    """Values for every named slot a template may use."""

    content_noun, locator_noun = _CONTENT_NOUNS.get(content_type or "", _CONTENT_NOUNS["audio"])
    return {"content_noun": content_noun, "locator_noun": locator_noun, **_GUIDE_SLOTS}


def render_template(template: str, values: dict[str, str]) -> str:
    """Fill ``{{slot}}`` placeholders. Unknown slots are left untouched."""

    def _replace(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return _SLOT_RE.sub(_replace, template)


@lru_cache(maxsize=16)
def get_default_prompt(family_key: str) -> str:
    prompt_file = _PROMPT_FILES.get(family_key)
    if prompt_file is None:
        raise ExtractionError(f"No default prompt is registered for family: {family_key}")
    try:
        prompt_text = prompt_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ExtractionError(f"Failed to load prompt file: {prompt_file}") from exc
    if not prompt_text:
        raise ExtractionError(f"Prompt file is empty: {prompt_file}")
    return prompt_text
