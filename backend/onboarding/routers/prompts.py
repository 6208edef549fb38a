"""Prompt template administration routes."""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from onboarding.db.dependencies import get_db
from onboarding.extraction.prompt_resolver import PromptResolver
from onboarding.schemas.common import ApiResponse
from onboarding.schemas.prompt_template import PromptTemplateCreate, PromptTemplateRead
from onboarding.services.extraction import get_prompt_resolver
from onboarding.services.prompt_templates import (
    UnknownFamilyError,
    activate_template,
    create_template,
    list_templates,
)


router = APIRouter(prefix="/prompt-templates")


@router.get("", response_model=ApiResponse[list[PromptTemplateRead]])
def get_templates(
    family: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> ApiResponse[list[PromptTemplateRead]]:
    """List stored templates, newest version first per family."""

    try:
        templates = list_templates(db, family)
    except UnknownFamilyError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ApiResponse(data=[PromptTemplateRead.model_validate(t) for t in templates])


@router.post("", response_model=ApiResponse[PromptTemplateRead], status_code=201)
def post_template(
    payload: PromptTemplateCreate,
    db: Session = Depends(get_db),
    resolver: PromptResolver = Depends(get_prompt_resolver),
) -> ApiResponse[PromptTemplateRead]:
    """Store a new template version."""

    try:
        template = create_template(db, payload, resolver)
    except UnknownFamilyError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ApiResponse(data=PromptTemplateRead.model_validate(template))


@router.post("/{template_id}/activate", response_model=ApiResponse[PromptTemplateRead])
def post_activate_template(
    template_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    resolver: PromptResolver = Depends(get_prompt_resolver),
) -> ApiResponse[PromptTemplateRead]:
    """Make a version the family's active template."""

    template = activate_template(db, template_id, resolver)
    if template is None:
        raise HTTPException(status_code=404, detail="Prompt template not found")
    return ApiResponse(data=PromptTemplateRead.model_validate(template))
