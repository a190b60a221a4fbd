"""
app/domain package marker.
"""

from app.domain.report_import import (
    CanonicalRecord,
    DuplicateMode,
    FieldMap,
    FileKind,
    ImportOutcome,
    ImportReport,
    ImportStats,
    RawRow,
)

__all__ = [
    "CanonicalRecord",
    "DuplicateMode",
    "FieldMap",
    "FileKind",
    "ImportOutcome",
    "ImportReport",
    "ImportStats",
    "RawRow",
]
