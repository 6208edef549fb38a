"""Model invocation audit log model."""

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.models.base import Base, CreatedAtMixin, IdMixin


class LLMOperation(Base, IdMixin, CreatedAtMixin):
    """One row per model invocation attempt. Rows are never updated."""

    __tablename__ = "llm_operations"

    pipeline_name: Mapped[str] = mapped_column(String(200), index=True, nullable=False)
    model: Mapped[str] = mapped_column(String(200), nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    latency_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, default=True, index=True, nullable=False)
    fallback_parsing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
