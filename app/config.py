"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables; blank values use the default.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class ReportImportSettings:
    """
    Runtime settings for bulk report imports.
    """

    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    max_workers: int = 4
    persistence_timeout_seconds: float = 30.0
    max_row_errors: int = 500
    log_row_errors: bool = True
    default_duplicate_mode: str = "update"


@lru_cache(maxsize=1)
def get_report_import_settings() -> ReportImportSettings:
    """
    Return cached report import settings from environment variables.
    """

    return ReportImportSettings(
        max_file_bytes=max(1, _get_int_env("REPORT_IMPORT_MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES)),
        max_workers=max(1, _get_int_env("REPORT_IMPORT_MAX_WORKERS", 4)),
        persistence_timeout_seconds=max(
            0.1,
            _get_float_env("REPORT_IMPORT_PERSISTENCE_TIMEOUT_SECONDS", 30.0),
        ),
        max_row_errors=max(1, _get_int_env("REPORT_IMPORT_MAX_ROW_ERRORS", 500)),
        log_row_errors=_get_bool_env("REPORT_IMPORT_LOG_ROW_ERRORS", True),
        default_duplicate_mode=_get_str_env("REPORT_IMPORT_DEFAULT_DUPLICATE_MODE", "update").lower(),
    )
