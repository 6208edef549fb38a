"""Prompt template administration."""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from onboarding.extraction.prompt_resolver import PromptResolver
from onboarding.extraction.types import LEGACY_FAMILY_KEY, parse_family
from onboarding.models import PromptTemplate
from onboarding.schemas.prompt_template import PromptTemplateCreate

logger = logging.getLogger(__name__)


class UnknownFamilyError(ValueError):
    """Raised when a template targets a family the pipeline does not know."""


def normalize_family(family: str) -> str:
    parsed = parse_family(family)
    if parsed is not None:
        return parsed.value
    if family.strip().lower() == LEGACY_FAMILY_KEY:
        raise UnknownFamilyError("The legacy prompt is compiled in and cannot be overridden")
    raise UnknownFamilyError(f"Unknown extraction family: {family}")


def list_templates(db: Session, family: str | None = None) -> list[PromptTemplate]:
    stmt = select(PromptTemplate)
    if family:
        stmt = stmt.where(PromptTemplate.family == normalize_family(family))
    stmt = stmt.order_by(PromptTemplate.family.asc(), PromptTemplate.version.desc())
    return list(db.scalars(stmt).all())


def create_template(
    db: Session,
    payload: PromptTemplateCreate,
    resolver: PromptResolver | None = None,
) -> PromptTemplate:
    """Store the next version for the family, optionally activating it."""

    family = normalize_family(payload.family)
    latest = db.scalar(select(func.max(PromptTemplate.version)).where(PromptTemplate.family == family))
    template = PromptTemplate(
        family=family,
        version=(latest or 0) + 1,
        name=payload.name,
        prompt=payload.prompt,
        model=payload.model,
        temperature=payload.temperature,
        max_tokens=payload.max_tokens,
        is_active=False,
    )
    db.add(template)
    db.flush()
    if payload.activate:
        _activate(db, template)
    db.commit()
    db.refresh(template)
    if resolver is not None:
        resolver.invalidate(family)
    logger.info(
        "prompt_templates.created family=%s version=%d active=%s",
        family,
        template.version,
        template.is_active,
    )
    return template


def activate_template(db: Session, template_id: int, resolver: PromptResolver | None = None) -> PromptTemplate | None:
    """Make one version the family's only active template."""

    template = db.get(PromptTemplate, template_id)
    if template is None:
        return None
    _activate(db, template)
    db.commit()
    db.refresh(template)
    if resolver is not None:
        resolver.invalidate(template.family)
    logger.info("prompt_templates.activated family=%s version=%d", template.family, template.version)
    return template


def _activate(db: Session, template: PromptTemplate) -> None:
    db.execute(
        update(PromptTemplate)
        .where(PromptTemplate.family == template.family, PromptTemplate.id != template.id)
        .values(is_active=False)
    )
    template.is_active = True
