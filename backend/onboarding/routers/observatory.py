"""Operation log and error triage routes."""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from onboarding.db.dependencies import get_db
from onboarding.schemas.common import ApiResponse
from onboarding.schemas.observatory import ErrorEventRead, ErrorStatusUpdate, OperationRead, PipelineStats
from onboarding.services.observatory import list_errors, list_operations, pipeline_stats, set_error_status


router = APIRouter(prefix="/observatory")


@router.get("/operations", response_model=ApiResponse[list[OperationRead]])
def get_operations(
    pipeline_name: str | None = Query(default=None),
    success: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> ApiResponse[list[OperationRead]]:
    """List recent model invocations."""

    operations = list_operations(db, pipeline_name=pipeline_name, success=success, limit=limit, offset=offset)
    return ApiResponse(data=[OperationRead.model_validate(op) for op in operations])


@router.get("/pipelines", response_model=ApiResponse[list[PipelineStats]])
def get_pipeline_stats(db: Session = Depends(get_db)) -> ApiResponse[list[PipelineStats]]:
    return ApiResponse(data=pipeline_stats(db))


@router.get("/errors", response_model=ApiResponse[list[ErrorEventRead]])
def get_errors(
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ErrorEventRead]]:
    """List deduplicated errors, most recently seen first."""

    try:
        errors = list_errors(db, status=status, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ApiResponse(data=[ErrorEventRead.model_validate(e) for e in errors])


@router.patch("/errors/{error_id}", response_model=ApiResponse[ErrorEventRead])
def patch_error_status(
    payload: ErrorStatusUpdate,
    error_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[ErrorEventRead]:
    """Triage an error. Resolving it makes the next occurrence open a fresh record."""

    event = set_error_status(db, error_id, payload.status)
    if event is None:
        raise HTTPException(status_code=404, detail="Error event not found")
    return ApiResponse(data=ErrorEventRead.model_validate(event))
