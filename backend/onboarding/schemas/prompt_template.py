"""Prompt template schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PromptTemplateCreate(BaseModel):
    """New template version for a family."""

    family: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    prompt: str = Field(..., min_length=1)
    model: str | None = Field(default=None, max_length=128)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    activate: bool = False


class PromptTemplateRead(BaseModel):
    """Serialized prompt template."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    family: str
    version: int
    name: str
    prompt: str
    model: str | None
    temperature: float | None
    max_tokens: int | None
    is_active: bool
    created_at: datetime
    updated_at: datetime
