"""Sales handover workflow schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class SectionScoreRead(BaseModel):
    key: str
    weight: float
    filled_ratio: float


class CompletenessRead(BaseModel):
    """Weighted completeness of a handover profile."""

    score: int
    gate: int
    can_submit: bool
    sections: list[SectionScoreRead] = Field(default_factory=list)


class HandoverProfileInput(BaseModel):
    profile: dict[str, Any] = Field(default_factory=dict)


class HandoverTransitionRequest(BaseModel):
    """Workflow action applied to a handover in ``current_status``."""

    action: Literal["submit", "accept", "request_changes"]
    current_status: Literal["draft", "submitted", "changes_requested", "accepted"] = "draft"
    profile: dict[str, Any] = Field(default_factory=dict)
    reviewer: str | None = None
    comment: str | None = None


class HandoverTransitionRead(BaseModel):
    status: str
    previous_status: str
    completeness: CompletenessRead
    reviewed_by: str | None = None
    review_comment: str | None = None
    changed_at: datetime | None = None
