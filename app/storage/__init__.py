"""
app/storage package marker.
"""

from app.storage.base import ReportStore, ReportStoreError

__all__ = [
    "ReportStore",
    "ReportStoreError",
]
