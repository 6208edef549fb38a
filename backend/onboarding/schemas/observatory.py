"""Operation and error log schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class OperationRead(BaseModel):
    """Serialized model invocation."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    pipeline_name: str
    model: str
    input_tokens: int
    output_tokens: int
    latency_ms: int
    success: bool
    fallback_parsing: bool
    error_message: str | None
    metadata_json: dict[str, Any]
    created_at: datetime


class PipelineStats(BaseModel):
    """Aggregates for one pipeline name."""

    pipeline_name: str
    calls: int
    failures: int
    fallback_calls: int
    input_tokens: int
    output_tokens: int
    mean_latency_ms: int


class ErrorEventRead(BaseModel):
    """Serialized deduplicated error."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    message: str
    status: str
    count: int
    feature_id: str | None
    endpoint: str | None
    metadata_json: dict[str, Any]
    first_seen: datetime
    last_seen: datetime


class ErrorStatusUpdate(BaseModel):
    status: Literal["INVESTIGATING", "RESOLVED", "IGNORED"] = "RESOLVED"
