"""ORM models package exports."""

from onboarding.models.error_event import ErrorEvent
from onboarding.models.extracted_item import ExtractedItemRecord
from onboarding.models.llm_operation import LLMOperation
from onboarding.models.prompt_template import PromptTemplate

__all__ = [
    "ErrorEvent",
    "ExtractedItemRecord",
    "LLMOperation",
    "PromptTemplate",
]
