"""
app/services/report_import_service.py

Batch orchestration for bulk report imports.

One run reads the file, resolves the column mapping once, then processes
rows on a bounded worker pool:

    coerce -> classify (natural-key lookup) -> persist -> outcome

Whole-file problems (oversize, undecodable, empty, required column missing)
abort the batch with an exception. Everything that goes wrong with a single
row becomes data on the returned ImportReport and the batch continues.

Store calls run on a separate executor so each one can be abandoned after
``persistence_timeout_seconds``. An abandoned call is not interrupted; it
keeps running in its thread until the store returns.

Rows of one file are processed concurrently, so two rows with the same
natural key may both be classified as inserts.
"""

from __future__ import annotations

import logging
import operator
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from functools import lru_cache, reduce
from typing import Any, Callable, Mapping, TypeVar

from app.config import get_report_import_settings
from app.domain.report_import import (
    ClassificationKind,
    DuplicateCheckReport,
    DuplicateMode,
    FieldMap,
    FileKind,
    ImportOutcome,
    ImportReport,
    ImportStats,
    OutcomeKind,
    RawRow,
    RowClassification,
    RowError,
    RowWarning,
    TabularData,
)
from app.logging_utils import log_event
from app.mappers.column_mapper import ColumnMapper
from app.readers.tabular_reader import TabularReader, ensure_within_size_limit
from app.services.duplicate_classifier import DuplicateClassifier, natural_key_for
from app.storage.base import ReportStore, ReportStoreError
from app.validators.value_coercer import ValueCoercer

logger = logging.getLogger(__name__)

T = TypeVar("T")

IN_FLIGHT_ROWS_PER_WORKER = 2

ERROR_PERSISTENCE_TIMEOUT = "persistence_timeout"
ERROR_PERSISTENCE_FAILURE = "persistence_failure"
ERROR_LOOKUP_FAILURE = "lookup_failure"
ERROR_ROW_PROCESSING = "row_processing_error"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StoreCallTimeoutError(RuntimeError):
    """
    Raised when a store call does not return within the configured timeout.
    """


class _LookupFailedError(RuntimeError):
    pass


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass
class _RunContext:
    field_map: FieldMap
    store: ReportStore
    store_executor: ThreadPoolExecutor


class ReportImportService:
    """
    Coordinates reading, mapping, coercion, duplicate handling and persistence.
    """

    def __init__(
        self,
        *,
        max_file_bytes: int,
        max_workers: int,
        persistence_timeout_seconds: float,
        max_row_errors: int,
        log_row_errors: bool,
        default_duplicate_mode: DuplicateMode | str = DuplicateMode.UPDATE,
        reader: TabularReader | None = None,
        mapper: ColumnMapper | None = None,
        coercer: ValueCoercer | None = None,
        classifier: DuplicateClassifier | None = None,
    ) -> None:
        self._max_file_bytes = max(1, max_file_bytes)
        self._max_workers = max(1, max_workers)
        self._persistence_timeout_seconds = max(0.001, persistence_timeout_seconds)
        self._max_row_errors = max(1, max_row_errors)
        self._log_row_errors = log_row_errors
        self._default_duplicate_mode = DuplicateMode.parse(default_duplicate_mode)
        self._reader = reader or TabularReader()
        self._mapper = mapper or ColumnMapper()
        self._coercer = coercer or ValueCoercer()
        self._classifier = classifier or DuplicateClassifier()

    @property
    def default_duplicate_mode(self) -> DuplicateMode:
        return self._default_duplicate_mode

    @property
    def max_file_bytes(self) -> int:
        return self._max_file_bytes

    def run_import(
        self,
        *,
        content: bytes,
        kind: FileKind,
        duplicate_mode: DuplicateMode | str | None,
        store: ReportStore,
        cancel_event: threading.Event | None = None,
        manual_overrides: Mapping[str, str] | None = None,
    ) -> ImportReport:
        """
        Import every row of one file and return the aggregated report.

        Raises OversizeFileError, MalformedFileError, EmptyFileError or
        SchemaMappingError for whole-file problems, and ValueError for an
        unknown duplicate-handling mode.
        """

        started = time.monotonic()
        mode = DuplicateMode.parse(duplicate_mode, default=self._default_duplicate_mode)
        tabular, field_map = self._prepare(content=content, kind=kind, manual_overrides=manual_overrides)

        log_event(
            logger,
            logging.INFO,
            "report_import_started",
            kind=kind.value,
            rows=len(tabular.rows),
            duplicate_mode=mode.value,
            unmapped_headers=list(field_map.unmapped_headers),
        )

        store_executor = ThreadPoolExecutor(
            max_workers=self._max_workers * 2,
            thread_name_prefix="report-import-store",
        )
        context = _RunContext(field_map=field_map, store=store, store_executor=store_executor)
        try:
            outcomes, cancelled = self._process_rows(
                rows=tabular.rows,
                mode=mode,
                context=context,
                cancel_event=cancel_event,
            )
        finally:
            store_executor.shutdown(wait=False, cancel_futures=True)

        outcomes.sort(key=lambda outcome: outcome.row_number)
        stats = reduce(
            operator.add,
            (ImportStats.from_outcome(outcome) for outcome in outcomes),
            ImportStats(),
        ).with_elapsed(time.monotonic() - started)

        report = ImportReport(
            stats=stats,
            errors=self._collect_errors(outcomes),
            warnings=self._collect_warnings(outcomes),
            categories_created=store.created_category_counts(),
            unmapped_headers=field_map.unmapped_headers,
            cancelled=cancelled,
        )

        log_event(
            logger,
            logging.INFO,
            "report_import_completed",
            total=stats.total,
            inserted=stats.inserted,
            updated=stats.updated,
            skipped=stats.skipped,
            failed=stats.failed,
            elapsed_seconds=round(stats.elapsed_seconds, 3),
            cancelled=cancelled,
        )
        return report

    def check_duplicates(
        self,
        *,
        content: bytes,
        kind: FileKind,
        duplicate_mode: DuplicateMode | str | None,
        store: ReportStore,
        manual_overrides: Mapping[str, str] | None = None,
    ) -> DuplicateCheckReport:
        """
        Classify every row against the store without writing anything.
        """

        mode = DuplicateMode.parse(duplicate_mode, default=self._default_duplicate_mode)
        tabular, field_map = self._prepare(content=content, kind=kind, manual_overrides=manual_overrides)

        classifications: list[RowClassification] = []
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="report-import-lookup")
        context = _RunContext(field_map=field_map, store=store, store_executor=executor)
        try:
            for raw_row in tabular.rows:
                classifications.append(self._classify_row(raw_row=raw_row, mode=mode, context=context))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return DuplicateCheckReport(rows=classifications, unmapped_headers=field_map.unmapped_headers)

    # ------------------------------------------------------------------
    # Batch internals
    # ------------------------------------------------------------------

    def _prepare(
        self,
        *,
        content: bytes,
        kind: FileKind,
        manual_overrides: Mapping[str, str] | None,
    ) -> tuple[TabularData, FieldMap]:
        ensure_within_size_limit(content, max_bytes=self._max_file_bytes)
        tabular = self._reader.read(content, kind)
        field_map = self._mapper.build_field_map(tabular.headers, manual_overrides=manual_overrides)
        return tabular, field_map

    def _process_rows(
        self,
        *,
        rows: tuple[RawRow, ...],
        mode: DuplicateMode,
        context: _RunContext,
        cancel_event: threading.Event | None,
    ) -> tuple[list[ImportOutcome], bool]:
        outcomes: list[ImportOutcome] = []
        cancelled = False
        window = self._max_workers * IN_FLIGHT_ROWS_PER_WORKER

        with ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="report-import-row",
        ) as executor:
            pending: dict[Future[ImportOutcome], int] = {}
            for raw_row in rows:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    logger.info(
                        "Report import cancelled; %d rows left unscheduled",
                        len(rows) - len(outcomes) - len(pending),
                    )
                    break

                while len(pending) >= window:
                    done, _ = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        outcomes.append(self._collect_outcome(future, pending.pop(future)))

                future = executor.submit(self._process_row, raw_row, mode, context)
                pending[future] = raw_row.row_number

            for future in list(pending):
                outcomes.append(self._collect_outcome(future, pending.pop(future)))

        return outcomes, cancelled

    def _collect_outcome(self, future: Future[ImportOutcome], row_number: int) -> ImportOutcome:
        try:
            outcome = future.result()
        except Exception as exc:  # noqa: BLE001
            outcome = ImportOutcome.failed(row_number, ERROR_ROW_PROCESSING, str(exc))
        if outcome.kind is OutcomeKind.FAILED and self._log_row_errors:
            logger.warning(
                "Report import row failed row=%s error_kind=%s detail=%s",
                outcome.row_number,
                outcome.error_kind,
                outcome.detail,
            )
        return outcome

    def _process_row(self, raw_row: RawRow, mode: DuplicateMode, context: _RunContext) -> ImportOutcome:
        row_number = raw_row.row_number
        warnings: tuple[RowWarning, ...] = ()
        try:
            if raw_row.is_blank():
                return ImportOutcome.skipped(row_number, "blank row")

            mapped = self._mapper.map_row(raw_row, context.field_map)
            record, coercion_warnings = self._coercer.coerce(mapped, row_number, context.field_map)
            warnings = tuple(coercion_warnings)

            if not record.title:
                return ImportOutcome.skipped(row_number, "missing title", warnings)
            if natural_key_for(record) is None:
                return ImportOutcome.skipped(row_number, "missing natural key", warnings)

            try:
                match = self._classifier.find_match(
                    record,
                    lambda key: self._lookup(context, key),
                )
            except StoreCallTimeoutError as exc:
                return ImportOutcome.failed(row_number, ERROR_PERSISTENCE_TIMEOUT, str(exc), warnings)
            except _LookupFailedError as exc:
                return ImportOutcome.failed(row_number, ERROR_LOOKUP_FAILURE, str(exc), warnings)

            classification = self._classifier.classify(match, mode)
            if classification.kind is ClassificationKind.SKIP_AS_DUPLICATE:
                return ImportOutcome.skipped(
                    row_number,
                    f"duplicate of existing report {classification.existing_id}",
                    warnings,
                )

            try:
                if classification.kind is ClassificationKind.UPDATE:
                    record_id = self._call_store(
                        context,
                        context.store.update,
                        classification.existing_id,
                        record,
                    )
                    return ImportOutcome.updated(row_number, record_id, warnings)
                record_id = self._call_store(context, context.store.insert, record)
                return ImportOutcome.inserted(row_number, record_id, warnings)
            except StoreCallTimeoutError as exc:
                return ImportOutcome.failed(row_number, ERROR_PERSISTENCE_TIMEOUT, str(exc), warnings)
            except ReportStoreError as exc:
                return ImportOutcome.failed(row_number, ERROR_PERSISTENCE_FAILURE, str(exc), warnings)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error while importing row=%s", row_number)
            return ImportOutcome.failed(row_number, ERROR_ROW_PROCESSING, f"{type(exc).__name__}: {exc}", warnings)

    def _classify_row(self, *, raw_row: RawRow, mode: DuplicateMode, context: _RunContext) -> RowClassification:
        row_number = raw_row.row_number
        if raw_row.is_blank():
            return RowClassification(row_number=row_number, kind=None, reason="blank row")

        mapped = self._mapper.map_row(raw_row, context.field_map)
        record, _ = self._coercer.coerce(mapped, row_number, context.field_map)
        key = natural_key_for(record)
        if not record.title or key is None:
            return RowClassification(row_number=row_number, kind=None, reason="missing title")

        try:
            match = self._classifier.find_match(record, lambda lookup_key: self._lookup(context, lookup_key))
        except (StoreCallTimeoutError, _LookupFailedError) as exc:
            return RowClassification(
                row_number=row_number,
                kind=None,
                natural_key=key.value,
                reason=f"{ERROR_LOOKUP_FAILURE}: {exc}",
            )

        classification = self._classifier.classify(match, mode)
        return RowClassification(
            row_number=row_number,
            kind=classification.kind,
            natural_key=key.value,
            existing_id=match.existing_id,
        )

    def _lookup(self, context: _RunContext, key: Any) -> str | None:
        try:
            return self._call_store(context, context.store.find_by_natural_key, key)
        except StoreCallTimeoutError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise _LookupFailedError(str(exc)) from exc

    def _call_store(self, context: _RunContext, call: Callable[..., T], *args: Any) -> T:
        future = context.store_executor.submit(call, *args)
        try:
            return future.result(timeout=self._persistence_timeout_seconds)
        except FuturesTimeoutError as exc:
            future.cancel()
            raise StoreCallTimeoutError(
                f"Store call {getattr(call, '__name__', 'call')} exceeded "
                f"{self._persistence_timeout_seconds:g}s."
            ) from exc

    def _collect_errors(self, outcomes: list[ImportOutcome]) -> list[RowError]:
        errors = [error for error in (outcome.to_error() for outcome in outcomes) if error is not None]
        return errors[: self._max_row_errors]

    def _collect_warnings(self, outcomes: list[ImportOutcome]) -> list[RowWarning]:
        warnings = [warning for outcome in outcomes for warning in outcome.warnings]
        return warnings[: self._max_row_errors]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_report_import_service() -> ReportImportService:
    """
    Build and cache the import service with env-driven settings.
    """

    settings = get_report_import_settings()
    return ReportImportService(
        max_file_bytes=settings.max_file_bytes,
        max_workers=settings.max_workers,
        persistence_timeout_seconds=settings.persistence_timeout_seconds,
        max_row_errors=settings.max_row_errors,
        log_row_errors=settings.log_row_errors,
        default_duplicate_mode=settings.default_duplicate_mode,
    )
