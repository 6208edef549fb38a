"""Extraction wiring and persistence of extracted items."""

from __future__ import annotations

import logging
from functools import lru_cache
from time import perf_counter

from sqlalchemy.orm import Session

from onboarding.config import get_settings
from onboarding.db.session import SessionLocal
from onboarding.extraction.clients import build_client_from_settings
from onboarding.extraction.confidence import initial_review_status
from onboarding.extraction.pipeline import ExtractionPipeline
from onboarding.extraction.prompt_resolver import PromptResolver, SqlTemplateStore
from onboarding.extraction.types import (
    ExtractionFamily,
    ExtractionRequest,
    ExtractionResult,
    family_for_session_phase,
)
from onboarding.models import ExtractedItemRecord
from onboarding.schemas.extraction import ExtractedItemRead, ExtractionRunResult
from onboarding.services.operation_tracker import EventBuffer, OperationTracker, SqlOperationStore

logger = logging.getLogger(__name__)


@lru_cache
def get_prompt_resolver() -> PromptResolver:
    return PromptResolver(SqlTemplateStore(SessionLocal))


@lru_cache
def get_operation_tracker() -> OperationTracker:
    settings = get_settings()
    return OperationTracker(
        SqlOperationStore(SessionLocal),
        EventBuffer(
            max_size=settings.tracker_buffer_size,
            max_retained=settings.tracker_max_buffered_events,
        ),
    )


def get_default_pipeline() -> ExtractionPipeline:
    """Return a pipeline for the configured provider."""

    settings = get_settings()
    return ExtractionPipeline(
        build_client_from_settings(settings),
        get_prompt_resolver(),
        get_operation_tracker(),
        default_temperature=settings.default_temperature,
        default_max_tokens=settings.default_max_tokens,
    )


def resolve_family_key(family: str | None, session_phase: int | None) -> str | None:
    """Explicit family wins; otherwise derive it from the session phase."""

    if family:
        return family
    mapped: ExtractionFamily | None = family_for_session_phase(session_phase)
    return mapped.value if mapped is not None else None


def run_extraction_for_session(
    db: Session,
    session_id: str,
    content: bytes | str,
    content_type: str,
    *,
    family: str | None = None,
    session_phase: int | None = None,
    mime_type: str | None = None,
    pipeline: ExtractionPipeline | None = None,
) -> ExtractionRunResult:
    """Extract items from one piece of session content and persist them."""

    total_started = perf_counter()
    family_key = resolve_family_key(family, session_phase)
    try:
        active_pipeline = pipeline or get_default_pipeline()

        started = perf_counter()
        result = active_pipeline.run(
            ExtractionRequest(content=content, content_type=content_type, family=family_key, mime_type=mime_type)
        )
        extract_ms = (perf_counter() - started) * 1000.0

        started = perf_counter()
        records = _save_extracted_items(db, session_id, result)
        db.commit()
        persist_ms = (perf_counter() - started) * 1000.0

        logger.info(
            (
                "extraction.session_timing session_id=%s family=%s validated=%s items=%d "
                "extract_ms=%.2f persist_ms=%.2f total_ms=%.2f"
            ),
            session_id,
            result.family,
            result.validated,
            len(records),
            extract_ms,
            persist_ms,
            (perf_counter() - total_started) * 1000.0,
        )
    except Exception:
        db.rollback()
        logger.exception(
            "extraction.session_failed session_id=%s family=%s elapsed_ms=%.2f",
            session_id,
            family_key,
            (perf_counter() - total_started) * 1000.0,
        )
        raise

    return ExtractionRunResult(
        session_id=session_id,
        family=result.family,
        content_type=result.content_type,
        pipeline_name=result.pipeline_name,
        model=result.model,
        validated=result.validated,
        fallback=result.fallback,
        prompt_tier=result.prompt_tier,
        items_created=len(records),
        items_dropped=result.dropped_item_count,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
        latency_ms=result.latency_ms,
        model_error=result.model_error,
        model_warnings=result.model_warnings,
        items=[_item_read(record) for record in records],
    )


def _save_extracted_items(db: Session, session_id: str, result: ExtractionResult) -> list[ExtractedItemRecord]:
    records = [
        ExtractedItemRecord(
            session_id=session_id,
            family=result.family,
            type=item.type,
            category=item.category,
            content=item.content,
            structured_data_json=item.structured_data,
            confidence=item.confidence,
            status=initial_review_status(item.confidence, validated=result.validated),
            validated=result.validated,
            source_quote=item.source_quote,
            source_speaker=item.source_speaker,
            source_timestamp=item.source_timestamp,
            source_locator=item.source_locator,
            prompt_template_id=result.prompt_template_id,
        )
        for item in result.items
    ]
    db.add_all(records)
    db.flush()
    return records


def _item_read(record: ExtractedItemRecord) -> ExtractedItemRead:
    return ExtractedItemRead(
        id=record.id,
        type=record.type,
        category=record.category,
        content=record.content,
        confidence=record.confidence,
        status=record.status,
        validated=record.validated,
        structured_data=record.structured_data_json or {},
        source_quote=record.source_quote,
        source_speaker=record.source_speaker,
        source_timestamp=record.source_timestamp,
        source_locator=record.source_locator,
    )
