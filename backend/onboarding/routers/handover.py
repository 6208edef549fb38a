"""Sales handover completeness and workflow routes."""

from fastapi import APIRouter, HTTPException

from onboarding.config import get_settings
from onboarding.schemas.common import ApiResponse
from onboarding.schemas.handover import (
    CompletenessRead,
    HandoverProfileInput,
    HandoverTransitionRead,
    HandoverTransitionRequest,
    SectionScoreRead,
)
from onboarding.services.completeness import CompletenessReport
from onboarding.services.handover import HandoverTransitionError, handover_completeness, transition_handover


router = APIRouter(prefix="/handover")


def _completeness_read(report: CompletenessReport) -> CompletenessRead:
    gate = get_settings().handover_completeness_gate
    return CompletenessRead(
        score=report.score,
        gate=gate,
        can_submit=report.meets(gate),
        sections=[
            SectionScoreRead(key=s.key, weight=s.weight, filled_ratio=s.filled_ratio) for s in report.sections
        ],
    )


@router.post("/completeness", response_model=ApiResponse[CompletenessRead])
def post_completeness(payload: HandoverProfileInput) -> ApiResponse[CompletenessRead]:
    """Score a handover profile without changing its state."""

    return ApiResponse(data=_completeness_read(handover_completeness(payload.profile)))


@router.post("/transition", response_model=ApiResponse[HandoverTransitionRead])
def post_transition(payload: HandoverTransitionRequest) -> ApiResponse[HandoverTransitionRead]:
    """Apply a submit / accept / request_changes action."""

    try:
        transition = transition_handover(
            payload.profile,
            payload.current_status,
            payload.action,
            reviewer=payload.reviewer,
            comment=payload.comment,
        )
    except HandoverTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ApiResponse(
        data=HandoverTransitionRead(
            status=transition.status,
            previous_status=transition.previous_status,
            completeness=_completeness_read(transition.completeness),
            reviewed_by=transition.reviewed_by,
            review_comment=transition.review_comment,
            changed_at=transition.changed_at,
        )
    )
