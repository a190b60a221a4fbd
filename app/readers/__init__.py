"""
app/readers package marker.
"""

from app.readers.tabular_reader import (
    EmptyFileError,
    MalformedFileError,
    OversizeFileError,
    TabularReader,
    detect_file_kind,
)

__all__ = [
    "EmptyFileError",
    "MalformedFileError",
    "OversizeFileError",
    "TabularReader",
    "detect_file_kind",
]
