"""Extraction endpoint schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ExtractionRunRequest(BaseModel):
    """Text content to extract from. Media uploads go through the multipart route."""

    content: str = Field(..., min_length=1)
    content_type: Literal["transcript", "document"] = "transcript"
    family: str | None = None
    session_phase: int | None = Field(default=None, ge=1)


class ExtractedItemRead(BaseModel):
    """Serialized persisted item."""

    id: int
    type: str
    category: str | None
    content: str
    confidence: float
    status: str
    validated: bool
    structured_data: dict[str, Any]
    source_quote: str | None
    source_speaker: str | None
    source_timestamp: float | None
    source_locator: str | None


class ExtractionRunResult(BaseModel):
    """Extraction execution summary."""

    session_id: str
    family: str
    content_type: str
    pipeline_name: str
    model: str
    validated: bool
    fallback: bool
    prompt_tier: str
    items_created: int
    items_dropped: int
    input_tokens: int
    output_tokens: int
    latency_ms: int
    model_error: str | None = None
    model_warnings: list[str] = Field(default_factory=list)
    items: list[ExtractedItemRead] = Field(default_factory=list)
