"""create reports and categories tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("description", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
        sa.ForeignKeyConstraint(
            ["parent_id"],
            ["categories.id"],
            name="fk_categories_parent_id_categories",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("kind", "slug", name="uq_categories_kind_slug"),
    )
    op.create_index("ix_categories_parent_id", "categories", ["parent_id"], unique=False)

    op.create_table(
        "reports",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("report_code", sa.String(length=120), nullable=True),
        sa.Column("sub_title", sa.String(length=500), nullable=True),
        sa.Column("author", sa.String(length=255), nullable=True),
        sa.Column("category", sa.String(length=255), nullable=True),
        sa.Column("sub_category", sa.String(length=255), nullable=True),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("sub_category_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("report_description", sa.Text(), nullable=True),
        sa.Column("table_of_contents", sa.Text(), nullable=True),
        sa.Column("segmentation", sa.Text(), nullable=True),
        sa.Column("companies", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("number_of_pages", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("excel_data_pack_license", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("single_user_license", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("enterprise_license_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column(
            "tags",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("popular", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("meta_title", sa.String(length=500), nullable=True),
        sa.Column("meta_description", sa.String(length=1000), nullable=True),
        sa.Column("meta_keywords", sa.String(length=1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_reports"),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_reports_category_id_categories",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["sub_category_id"],
            ["categories.id"],
            name="fk_reports_sub_category_id_categories",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("slug", name="uq_reports_slug"),
    )
    op.create_index("ix_reports_status", "reports", ["status"], unique=False)
    op.create_index("ix_reports_category_id", "reports", ["category_id"], unique=False)
    op.create_index("ix_reports_title_key", "reports", [sa.text("lower(trim(title))")], unique=False)
    op.create_index("ix_reports_report_code_key", "reports", [sa.text("lower(trim(report_code))")], unique=False)


def downgrade() -> None:
    op.drop_index("ix_reports_report_code_key", table_name="reports")
    op.drop_index("ix_reports_title_key", table_name="reports")
    op.drop_index("ix_reports_category_id", table_name="reports")
    op.drop_index("ix_reports_status", table_name="reports")
    op.drop_table("reports")
    op.drop_index("ix_categories_parent_id", table_name="categories")
    op.drop_table("categories")
