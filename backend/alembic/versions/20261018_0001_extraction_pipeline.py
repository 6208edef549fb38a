"""prompt templates, operation log, error log and extracted items

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "prompt_templates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("family", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("model", sa.String(length=128), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("max_tokens", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("family", "version", name="uq_prompt_templates_family_version"),
    )
    op.create_index("ix_prompt_templates_family", "prompt_templates", ["family"], unique=False)
    op.create_index("ix_prompt_templates_is_active", "prompt_templates", ["is_active"], unique=False)

    op.create_table(
        "llm_operations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("pipeline_name", sa.String(length=200), nullable=False),
        sa.Column("model", sa.String(length=200), nullable=False),
        sa.Column("input_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("output_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("latency_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("fallback_parsing", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_llm_operations_pipeline_name", "llm_operations", ["pipeline_name"], unique=False)
    op.create_index("ix_llm_operations_success", "llm_operations", ["success"], unique=False)

    op.create_table(
        "error_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="NEW"),
        sa.Column("count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("stack", sa.Text(), nullable=True),
        sa.Column("feature_id", sa.String(length=100), nullable=True),
        sa.Column("endpoint", sa.String(length=500), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        sa.Column("first_seen", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("last_seen", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_error_events_status", "error_events", ["status"], unique=False)

    op.create_table(
        "extracted_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.String(length=255), nullable=False),
        sa.Column("family", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("structured_data_json", sa.JSON(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="PENDING"),
        sa.Column("validated", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("source_quote", sa.Text(), nullable=True),
        sa.Column("source_speaker", sa.String(length=255), nullable=True),
        sa.Column("source_timestamp", sa.Float(), nullable=True),
        sa.Column("source_locator", sa.String(length=255), nullable=True),
        sa.Column("prompt_template_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_extracted_items_session_id", "extracted_items", ["session_id"], unique=False)
    op.create_index("ix_extracted_items_type", "extracted_items", ["type"], unique=False)
    op.create_index("ix_extracted_items_status", "extracted_items", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_extracted_items_status", table_name="extracted_items")
    op.drop_index("ix_extracted_items_type", table_name="extracted_items")
    op.drop_index("ix_extracted_items_session_id", table_name="extracted_items")
    op.drop_table("extracted_items")
    op.drop_index("ix_error_events_status", table_name="error_events")
    op.drop_table("error_events")
    op.drop_index("ix_llm_operations_success", table_name="llm_operations")
    op.drop_index("ix_llm_operations_pipeline_name", table_name="llm_operations")
    op.drop_table("llm_operations")
    op.drop_index("ix_prompt_templates_is_active", table_name="prompt_templates")
    op.drop_index("ix_prompt_templates_family", table_name="prompt_templates")
    op.drop_table("prompt_templates")
