"""
Run a bulk report import from the CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
from dataclasses import asdict
from pathlib import Path

from app.domain.report_import import DuplicateCheckReport, ImportReport
from app.readers.tabular_reader import TabularReadError, detect_file_kind
from app.services.report_import_service import get_report_import_service
from app.storage.sqlalchemy_storage import SQLAlchemyReportStore
from app.validators.mapping_validator import SchemaMappingError
from db.session import SessionLocal


def _parse_overrides(values: list[str]) -> dict[str, str] | None:
    overrides: dict[str, str] = {}
    for value in values:
        header, sep, field = value.partition("=")
        if not sep or not header.strip() or not field.strip():
            raise argparse.ArgumentTypeError(f"Expected HEADER=field, got {value!r}")
        overrides[header.strip()] = field.strip()
    return overrides or None


def _report_payload(report: ImportReport | DuplicateCheckReport) -> dict:
    return asdict(report)


def main() -> int:
    parser = argparse.ArgumentParser(description="Import reports from a CSV or XLSX file.")
    parser.add_argument("path", type=Path, help="Delimited text or workbook file to import.")
    parser.add_argument(
        "--mode",
        dest="duplicate_mode",
        default=None,
        choices=("update", "skip", "create"),
        help="Duplicate-handling mode (defaults to REPORT_IMPORT_DEFAULT_DUPLICATE_MODE).",
    )
    parser.add_argument(
        "--map",
        dest="mappings",
        action="append",
        default=[],
        metavar="HEADER=FIELD",
        help="Manual column mapping override; may be repeated.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only classify rows against existing reports; write nothing.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        overrides = _parse_overrides(args.mappings)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    content = args.path.read_bytes()
    kind = detect_file_kind(filename=args.path.name, content=content)
    service = get_report_import_service()
    store = SQLAlchemyReportStore(session_factory=SessionLocal)

    cancel_event = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: cancel_event.set())

    try:
        if args.dry_run:
            report: ImportReport | DuplicateCheckReport = service.check_duplicates(
                content=content,
                kind=kind,
                duplicate_mode=args.duplicate_mode,
                store=store,
                manual_overrides=overrides,
            )
        else:
            report = service.run_import(
                content=content,
                kind=kind,
                duplicate_mode=args.duplicate_mode,
                store=store,
                cancel_event=cancel_event,
                manual_overrides=overrides,
            )
    except SchemaMappingError as exc:
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return 2
    except TabularReadError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    print(json.dumps(_report_payload(report), indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
