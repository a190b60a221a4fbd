"""
app/api/routers/report_import.py

Bulk report import HTTP endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.api.dependencies import ImportUpload, get_import_upload, get_report_store
from app.readers.tabular_reader import OversizeFileError, TabularReadError
from app.schemas.report_import import DuplicateCheckResponse, ImportReportResponse
from app.services.report_import_service import ReportImportService, get_report_import_service
from app.services.template_export import TEMPLATE_FILENAME, build_import_template
from app.storage.base import ReportStore
from app.validators.mapping_validator import SchemaMappingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["report-import"])


def _read_upload(upload: ImportUpload, *, max_bytes: int) -> bytes:
    # One byte past the cap is enough to reject the file without buffering all of it.
    try:
        return upload.file.file.read(max_bytes + 1)
    finally:
        upload.file.file.close()


def _to_http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, OversizeFileError):
        return HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(exc),
        )
    if isinstance(exc, SchemaMappingError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.to_dict(),
        )
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(exc),
    )


@router.post("/bulk-upload", response_model=ImportReportResponse)
def bulk_upload_reports(
    upload: ImportUpload = Depends(get_import_upload),
    duplicate_mode: str | None = Query(
        default=None,
        description="How to treat rows matching an existing report: update, skip or create",
    ),
    store: ReportStore = Depends(get_report_store),
    import_service: ReportImportService = Depends(get_report_import_service),
) -> ImportReportResponse:
    """
    Import reports from one delimited-text or workbook file.
    """

    content = _read_upload(upload, max_bytes=import_service.max_file_bytes)
    try:
        report = import_service.run_import(
            content=content,
            kind=upload.kind,
            duplicate_mode=duplicate_mode,
            store=store,
            manual_overrides=upload.manual_overrides,
        )
    except (TabularReadError, SchemaMappingError, ValueError) as exc:
        raise _to_http_error(exc) from exc

    return ImportReportResponse.from_report(report)


@router.post("/check-duplicates", response_model=DuplicateCheckResponse)
def check_duplicate_reports(
    upload: ImportUpload = Depends(get_import_upload),
    duplicate_mode: str | None = Query(default=None),
    store: ReportStore = Depends(get_report_store),
    import_service: ReportImportService = Depends(get_report_import_service),
) -> DuplicateCheckResponse:
    """
    Report how each row would be classified without writing anything.
    """

    content = _read_upload(upload, max_bytes=import_service.max_file_bytes)
    try:
        report = import_service.check_duplicates(
            content=content,
            kind=upload.kind,
            duplicate_mode=duplicate_mode,
            store=store,
            manual_overrides=upload.manual_overrides,
        )
    except (TabularReadError, SchemaMappingError, ValueError) as exc:
        raise _to_http_error(exc) from exc

    return DuplicateCheckResponse.from_report(report)


@router.get("/import-template")
def download_import_template() -> Response:
    return Response(
        content=build_import_template(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )
