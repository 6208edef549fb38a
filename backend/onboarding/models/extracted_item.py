"""Persisted extracted item model."""

from sqlalchemy import JSON, Boolean, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.models.base import Base, CreatedAtMixin, IdMixin


class ExtractedItemRecord(Base, IdMixin, CreatedAtMixin):
    """One structured fact extracted from a session recording or document."""

    __tablename__ = "extracted_items"

    session_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    family: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    structured_data_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="PENDING", index=True, nullable=False)
    validated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    source_quote: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_speaker: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_timestamp: Mapped[float | None] = mapped_column(Float, nullable=True)
    source_locator: Mapped[str | None] = mapped_column(String(255), nullable=True)
    prompt_template_id: Mapped[int | None] = mapped_column(nullable=True)
