"""Extraction execution routes."""

from fastapi import APIRouter, Depends, HTTPException, Path, Query, UploadFile
from sqlalchemy.orm import Session

from onboarding.db.dependencies import get_db
from onboarding.extraction.clients import content_type_for_mime, mime_type_for_filename
from onboarding.extraction.errors import ExtractionError, ProviderError, ResponseParseError
from onboarding.extraction.pipeline import ExtractionPipeline
from onboarding.schemas.common import ApiResponse
from onboarding.schemas.extraction import ExtractionRunRequest, ExtractionRunResult
from onboarding.services.extraction import get_default_pipeline, run_extraction_for_session


router = APIRouter(prefix="/sessions/{session_id}")


def get_extraction_pipeline() -> ExtractionPipeline:
    try:
        return get_default_pipeline()
    except ExtractionError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _run(db: Session, pipeline: ExtractionPipeline, session_id: str, **kwargs) -> ExtractionRunResult:
    try:
        return run_extraction_for_session(db, session_id, pipeline=pipeline, **kwargs)
    except ProviderError as exc:
        raise HTTPException(status_code=503 if exc.retryable else 502, detail=exc.user_message) from None
    except ResponseParseError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from None
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/extract", response_model=ApiResponse[ExtractionRunResult])
def extract_session_text(
    payload: ExtractionRunRequest,
    session_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
    pipeline: ExtractionPipeline = Depends(get_extraction_pipeline),
) -> ApiResponse[ExtractionRunResult]:
    """Extract structured items from transcript or document text."""

    result = _run(
        db,
        pipeline,
        session_id,
        content=payload.content,
        content_type=payload.content_type,
        family=payload.family,
        session_phase=payload.session_phase,
    )
    return ApiResponse(data=result)


@router.post("/extract/upload", response_model=ApiResponse[ExtractionRunResult])
def extract_session_upload(
    file: UploadFile,
    session_id: str = Path(..., min_length=1),
    family: str | None = Query(default=None),
    session_phase: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    pipeline: ExtractionPipeline = Depends(get_extraction_pipeline),
) -> ApiResponse[ExtractionRunResult]:
    """Extract structured items from an uploaded recording or document."""

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=422, detail="Uploaded file is empty")
    mime_type = file.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mime_type_for_filename(file.filename or "")
    result = _run(
        db,
        pipeline,
        session_id,
        content=content,
        content_type=content_type_for_mime(mime_type),
        family=family,
        session_phase=session_phase,
        mime_type=mime_type,
    )
    return ApiResponse(data=result)
