"""
app/api/routers package marker.
"""

from app.api.routers.report_import import router as report_import_router

__all__ = [
    "report_import_router",
]
