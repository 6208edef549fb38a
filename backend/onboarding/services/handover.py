"""Sales handover review workflow gated on profile completeness."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from onboarding.config import get_settings
from onboarding.services.completeness import CompletenessReport, SectionConfig, compute_completeness

HandoverStatus = Literal["draft", "submitted", "changes_requested", "accepted"]
HandoverAction = Literal["submit", "accept", "request_changes"]

SALES_HANDOVER_SECTIONS: tuple[SectionConfig, ...] = (
    SectionConfig("context", 30, ("dealSummary", "clientMotivation", "contractType", "contractValue", "salesOwner")),
    SectionConfig("specialNotes", 30, ("clientPreferences", "internalNotes", "promisedCapabilities", "knownConstraints")),
    SectionConfig("stakeholders", 20),
    SectionConfig("deadlines", 10),
    SectionConfig("watchOuts", 10),
)

_ALLOWED_FROM: dict[str, tuple[str, ...]] = {
    "submit": ("draft", "changes_requested"),
    "accept": ("submitted",),
    "request_changes": ("submitted",),
}
_NEXT_STATUS: dict[str, HandoverStatus] = {
    "submit": "submitted",
    "accept": "accepted",
    "request_changes": "changes_requested",
}


class HandoverTransitionError(RuntimeError):
    """Raised when a workflow action is not allowed from the current state."""


@dataclass(slots=True)
class HandoverTransition:
    status: HandoverStatus
    previous_status: str
    completeness: CompletenessReport
    reviewed_by: str | None = None
    review_comment: str | None = None
    changed_at: datetime | None = None


def handover_completeness(profile: Mapping[str, Any] | None) -> CompletenessReport:
    return compute_completeness(profile, SALES_HANDOVER_SECTIONS)


def can_submit(profile: Mapping[str, Any] | None, gate: int | None = None) -> bool:
    gate = get_settings().handover_completeness_gate if gate is None else gate
    return handover_completeness(profile).meets(gate)


def transition_handover(
    profile: Mapping[str, Any] | None,
    current_status: str | None,
    action: str,
    *,
    reviewer: str | None = None,
    comment: str | None = None,
    gate: int | None = None,
) -> HandoverTransition:
    """Apply ``action`` to a handover in ``current_status``.

    Saving drafts never goes through here, so the completeness gate only
    ever blocks ``submit``.
    """

    status = current_status or "draft"
    allowed = _ALLOWED_FROM.get(action)
    if allowed is None:
        raise HandoverTransitionError(f"Unknown handover action: {action}")
    if status not in allowed:
        raise HandoverTransitionError(f"Cannot {action} a handover in '{status}' state; expected one of {', '.join(allowed)}")

    report = handover_completeness(profile)
    gate = get_settings().handover_completeness_gate if gate is None else gate
    if action == "submit" and not report.meets(gate):
        raise HandoverTransitionError(f"Handover is {report.score}% complete; at least {gate}% is required to submit")

    is_review = action in ("accept", "request_changes")
    return HandoverTransition(
        status=_NEXT_STATUS[action],
        previous_status=status,
        completeness=report,
        reviewed_by=reviewer if is_review else None,
        review_comment=(comment or "") if is_review else None,
        changed_at=datetime.now(timezone.utc),
    )
