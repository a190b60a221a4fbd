"""
app/api/dependencies.py

Shared FastAPI dependencies for report import requests.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from fastapi import File, Form, HTTPException, UploadFile, status

from app.domain.report_import import FileKind
from app.readers.tabular_reader import UnsupportedFileKindError, detect_file_kind
from app.storage.base import ReportStore
from app.storage.sqlalchemy_storage import SQLAlchemyReportStore
from db.session import SessionLocal


@dataclass(frozen=True)
class ImportUpload:
    """
    Uploaded import file with its resolved kind and optional column overrides.
    """

    file: UploadFile
    kind: FileKind
    manual_overrides: dict[str, str] | None = None


def _parse_column_mapping(raw: str | None) -> dict[str, str] | None:
    if raw is None or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="column_mapping must be a JSON object of header -> field.",
        ) from exc
    if not isinstance(parsed, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in parsed.items()
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="column_mapping must be a JSON object of header -> field.",
        )
    return parsed


def get_import_upload(
    file: UploadFile = File(...),
    column_mapping: str | None = Form(default=None),
) -> ImportUpload:
    """
    Validate that the upload is delimited text or a workbook.
    """

    try:
        kind = detect_file_kind(filename=file.filename, content_type=file.content_type)
    except UnsupportedFileKindError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return ImportUpload(file=file, kind=kind, manual_overrides=_parse_column_mapping(column_mapping))


def get_report_store() -> ReportStore:
    return SQLAlchemyReportStore(session_factory=SessionLocal)
