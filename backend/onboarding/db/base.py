"""SQLAlchemy metadata registry import for Alembic."""

from onboarding.models import ErrorEvent, ExtractedItemRecord, LLMOperation, PromptTemplate
from onboarding.models.base import Base

__all__ = ["Base", "ErrorEvent", "ExtractedItemRecord", "LLMOperation", "PromptTemplate"]
