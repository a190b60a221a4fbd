"""
app/mappers package marker.
"""

from app.mappers.column_mapper import (
    CANONICAL_FIELDS,
    HEADER_SYNONYMS,
    REQUIRED_CANONICAL_FIELDS,
    ColumnMapper,
    normalize_header,
)

__all__ = [
    "CANONICAL_FIELDS",
    "HEADER_SYNONYMS",
    "REQUIRED_CANONICAL_FIELDS",
    "ColumnMapper",
    "normalize_header",
]
