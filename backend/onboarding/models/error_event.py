"""Deduplicated recurring error model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.models.base import Base, CreatedAtMixin, IdMixin

OPEN_ERROR_STATUSES = ("NEW", "INVESTIGATING")
ERROR_STATUSES = ("NEW", "INVESTIGATING", "RESOLVED", "IGNORED")


class ErrorEvent(Base, IdMixin, CreatedAtMixin):
    """Recurring error keyed by exact message while its status is open."""

    __tablename__ = "error_events"

    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="NEW", index=True, nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    stack: Mapped[str | None] = mapped_column(Text, nullable=True)
    feature_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    endpoint: Mapped[str | None] = mapped_column(String(500), nullable=True)
    metadata_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    first_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
