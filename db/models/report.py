"""
db/models/report.py

Published research report records populated by bulk import or the editor.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ReportStatus:
    DRAFT = "draft"
    PUBLISHED = "published"


class Report(Base, TimestampMixin):
    __tablename__ = "reports"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    report_code: Mapped[str | None] = mapped_column(
        String(120),
        nullable=True,
        comment="Publisher-assigned report code, preferred natural key",
    )
    sub_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)

    category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sub_category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    sub_category_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    report_description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Sanitized HTML")
    table_of_contents: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Sanitized HTML")
    segmentation: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Sanitized HTML")
    companies: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Sanitized HTML")
    content: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Sanitized HTML")

    number_of_pages: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    excel_data_pack_license: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    single_user_license: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    enterprise_license_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    tags: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    popular: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ReportStatus.DRAFT,
        comment="draft, published",
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    meta_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    meta_keywords: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        Index("ix_reports_status", "status"),
        Index("ix_reports_category_id", "category_id"),
    )


# Natural-key lookups compare lower(trim(column)).
Index("ix_reports_title_key", func.lower(func.trim(Report.title)))
Index("ix_reports_report_code_key", func.lower(func.trim(Report.report_code)))
