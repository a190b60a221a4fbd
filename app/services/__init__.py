"""
app/services package marker.
"""

from app.services.duplicate_classifier import DuplicateClassifier, natural_key_for
from app.services.report_import_service import ReportImportService, get_report_import_service
from app.services.template_export import build_import_template

__all__ = [
    "DuplicateClassifier",
    "ReportImportService",
    "build_import_template",
    "get_report_import_service",
    "natural_key_for",
]
