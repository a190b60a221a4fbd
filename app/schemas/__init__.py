"""
app/schemas package marker.
"""

from app.schemas.report_import import (
    DuplicateCheckResponse,
    ImportReportResponse,
    RowErrorResponse,
    RowWarningResponse,
)

__all__ = [
    "DuplicateCheckResponse",
    "ImportReportResponse",
    "RowErrorResponse",
    "RowWarningResponse",
]
