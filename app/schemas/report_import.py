"""
app/schemas/report_import.py

Response schemas for report import endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.domain.report_import import DuplicateCheckReport, ImportReport


class ImportStatsResponse(BaseModel):
    total: int = Field(..., ge=0)
    inserted: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    elapsed_seconds: float = Field(..., ge=0)


class RowErrorResponse(BaseModel):
    """
    API response model for one failed row.
    """

    row_number: int = Field(..., ge=1)
    error_kind: str
    detail: str


class RowWarningResponse(BaseModel):
    """
    API response model for one soft, per-row warning.
    """

    row_number: int = Field(..., ge=1)
    kind: str
    message: str
    column: str | None = None
    value: str | None = None


class ImportReportResponse(BaseModel):
    """
    API response model for a completed bulk import.
    """

    stats: ImportStatsResponse
    errors: list[RowErrorResponse] = Field(default_factory=list)
    warnings: list[RowWarningResponse] = Field(default_factory=list)
    categories_created: dict[str, int] = Field(default_factory=dict)
    unmapped_headers: list[str] = Field(default_factory=list)
    cancelled: bool = False

    @classmethod
    def from_report(cls, report: ImportReport) -> "ImportReportResponse":
        stats = report.stats
        return cls(
            stats=ImportStatsResponse(
                total=stats.total,
                inserted=stats.inserted,
                updated=stats.updated,
                skipped=stats.skipped,
                failed=stats.failed,
                elapsed_seconds=stats.elapsed_seconds,
            ),
            errors=[
                RowErrorResponse(
                    row_number=error.row_number,
                    error_kind=error.error_kind,
                    detail=error.detail,
                )
                for error in report.errors
            ],
            warnings=[
                RowWarningResponse(
                    row_number=warning.row_number,
                    kind=warning.kind,
                    message=warning.message,
                    column=warning.column,
                    value=warning.value,
                )
                for warning in report.warnings
            ],
            categories_created=dict(report.categories_created),
            unmapped_headers=list(report.unmapped_headers),
            cancelled=report.cancelled,
        )


class RowClassificationResponse(BaseModel):
    row_number: int = Field(..., ge=1)
    classification: str | None = None
    natural_key: str | None = None
    existing_id: str | None = None
    reason: str | None = None


class DuplicateCheckResponse(BaseModel):
    """
    API response model for a dry-run duplicate check.
    """

    rows: list[RowClassificationResponse] = Field(default_factory=list)
    duplicates: int = Field(..., ge=0)
    unmapped_headers: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: DuplicateCheckReport) -> "DuplicateCheckResponse":
        rows = [
            RowClassificationResponse(
                row_number=row.row_number,
                classification=row.kind.value if row.kind is not None else None,
                natural_key=row.natural_key,
                existing_id=row.existing_id,
                reason=row.reason,
            )
            for row in report.rows
        ]
        return cls(
            rows=rows,
            duplicates=sum(1 for row in report.rows if row.existing_id is not None),
            unmapped_headers=list(report.unmapped_headers),
        )
