"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.category import Category, CategoryKind
from db.models.report import Report, ReportStatus

__all__ = [
    "Category",
    "CategoryKind",
    "Report",
    "ReportStatus",
]
