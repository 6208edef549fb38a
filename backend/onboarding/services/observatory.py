"""Read and triage services over the operation and error logs."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from onboarding.models import ErrorEvent, LLMOperation
from onboarding.models.error_event import ERROR_STATUSES
from onboarding.schemas.observatory import PipelineStats


def list_operations(
    db: Session,
    *,
    pipeline_name: str | None = None,
    success: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[LLMOperation]:
    """List recent operations, newest first."""

    stmt = select(LLMOperation)
    if pipeline_name:
        stmt = stmt.where(LLMOperation.pipeline_name == pipeline_name)
    if success is not None:
        stmt = stmt.where(LLMOperation.success.is_(success))
    stmt = stmt.order_by(LLMOperation.created_at.desc(), LLMOperation.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


def pipeline_stats(db: Session) -> list[PipelineStats]:
    """Per-pipeline call counts, failures, fallback parses, tokens and mean latency."""

    stmt = (
        select(
            LLMOperation.pipeline_name,
            func.count(LLMOperation.id),
            func.sum(case((LLMOperation.success.is_(False), 1), else_=0)),
            func.sum(case((LLMOperation.fallback_parsing.is_(True), 1), else_=0)),
            func.sum(LLMOperation.input_tokens),
            func.sum(LLMOperation.output_tokens),
            func.avg(LLMOperation.latency_ms),
        )
        .group_by(LLMOperation.pipeline_name)
        .order_by(LLMOperation.pipeline_name.asc())
    )
    return [
        PipelineStats(
            pipeline_name=name,
            calls=calls,
            failures=int(failures or 0),
            fallback_calls=int(fallback or 0),
            input_tokens=int(input_tokens or 0),
            output_tokens=int(output_tokens or 0),
            mean_latency_ms=round(float(mean_latency or 0)),
        )
        for name, calls, failures, fallback, input_tokens, output_tokens, mean_latency in db.execute(stmt).all()
    ]


def list_errors(db: Session, *, status: str | None = None, limit: int = 50) -> list[ErrorEvent]:
    stmt = select(ErrorEvent)
    if status:
        normalized = status.upper()
        if normalized not in ERROR_STATUSES:
            raise ValueError(f"Unknown error status: {status}")
        stmt = stmt.where(ErrorEvent.status == normalized)
    stmt = stmt.order_by(ErrorEvent.last_seen.desc(), ErrorEvent.id.desc()).limit(limit)
    return list(db.scalars(stmt).all())


def set_error_status(db: Session, error_id: int, status: str) -> ErrorEvent | None:
    """Move an error through triage. Resolved errors stop absorbing new occurrences."""

    event = db.get(ErrorEvent, error_id)
    if event is None:
        return None
    event.status = status
    event.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(event)
    return event
