"""Prompt template ORM model."""

from sqlalchemy import Boolean, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.models.base import Base, CreatedAtMixin, IdMixin


class PromptTemplate(Base, IdMixin, CreatedAtMixin):
    """Operator-managed instruction text for one extraction family."""

    __tablename__ = "prompt_templates"
    __table_args__ = (UniqueConstraint("family", "version", name="uq_prompt_templates_family_version"),)

    family: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, index=True, nullable=False)
