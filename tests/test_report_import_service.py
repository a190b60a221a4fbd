from __future__ import annotations

import threading
import unittest
from datetime import datetime, timezone

from app.domain.report_import import ClassificationKind, DuplicateMode, FileKind
from app.readers.tabular_reader import MalformedFileError, OversizeFileError
from app.services.report_import_service import (
    ERROR_LOOKUP_FAILURE,
    ERROR_PERSISTENCE_FAILURE,
    ERROR_PERSISTENCE_TIMEOUT,
    ReportImportService,
)
from app.validators.mapping_validator import SchemaMappingError
from app.validators.value_coercer import ValueCoercer
from tests.fakes import InMemoryReportStore, csv_bytes

IMPORT_TIME = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _service(**overrides: object) -> ReportImportService:
    settings: dict[str, object] = {
        "max_file_bytes": 1024 * 1024,
        "max_workers": 4,
        "persistence_timeout_seconds": 2.0,
        "max_row_errors": 100,
        "log_row_errors": False,
        "coercer": ValueCoercer(clock=lambda: IMPORT_TIME),
    }
    settings.update(overrides)
    return ReportImportService(**settings)  # type: ignore[arg-type]


class TestRunImport(unittest.TestCase):
    def test_imports_every_row_and_keeps_bad_date_as_warning(self) -> None:
        store = InMemoryReportStore()
        content = csv_bytes(
            "Title,Published At,Pages",
            "EV Market,2024-01-05,120",
            "Solar Outlook,someday,80",
            "Hydrogen Review,2024-03-01T00:00:00Z,64",
        )

        report = _service().run_import(
            content=content,
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
        )

        self.assertEqual(report.stats.total, 3)
        self.assertEqual(report.stats.inserted, 3)
        self.assertEqual(report.stats.failed, 0)
        self.assertEqual(report.errors, [])
        self.assertEqual(len(report.warnings), 1)
        self.assertEqual(report.warnings[0].row_number, 3)
        self.assertEqual(report.warnings[0].column, "Published At")
        stored = {record.title: record for record in store.records.values()}
        self.assertEqual(stored["Solar Outlook"].get("publishedAt"), IMPORT_TIME)
        self.assertGreaterEqual(report.stats.elapsed_seconds, 0.0)

    def test_stats_always_add_up(self) -> None:
        store = InMemoryReportStore(failing_titles=("Broken",))
        store.seed(title="Existing")
        content = csv_bytes(
            "Title,Author",
            "New One,A",
            "existing ,B",
            ",",
            "Broken,C",
            ",Nobody",
        )

        stats = _service().run_import(
            content=content,
            kind=FileKind.DELIMITED,
            duplicate_mode=DuplicateMode.SKIP,
            store=store,
        ).stats

        self.assertEqual(stats.total, 5)
        self.assertEqual((stats.inserted, stats.updated, stats.skipped, stats.failed), (1, 0, 3, 1))
        self.assertEqual(stats.inserted + stats.updated + stats.skipped + stats.failed, stats.total)

    def test_update_mode_overwrites_existing_report(self) -> None:
        store = InMemoryReportStore()
        existing_id = store.seed(title="Global EV Market")

        report = _service().run_import(
            content=csv_bytes("Report Title,Author", "  global ev market ,Jane"),
            kind=FileKind.DELIMITED,
            duplicate_mode=None,
            store=store,
        )

        self.assertEqual(report.stats.updated, 1)
        self.assertEqual(store.updated_ids, [existing_id])
        self.assertEqual(store.inserted_ids, [])

    def test_create_mode_inserts_even_when_duplicate(self) -> None:
        store = InMemoryReportStore()
        store.seed(title="Global EV Market")

        report = _service().run_import(
            content=csv_bytes("Title", "Global EV Market"),
            kind=FileKind.DELIMITED,
            duplicate_mode="create",
            store=store,
        )

        self.assertEqual(report.stats.inserted, 1)
        self.assertEqual(len(store.inserted_ids), 1)

    def test_report_code_is_preferred_natural_key(self) -> None:
        store = InMemoryReportStore()
        existing_id = store.seed(title="Old Title", report_code="EVB-001")

        _service().run_import(
            content=csv_bytes("Title,Report Code", "Renamed Report,evb-001"),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
        )

        self.assertEqual(store.updated_ids, [existing_id])
        self.assertEqual(store.records[existing_id].title, "Renamed Report")

    def test_store_failure_is_recorded_and_batch_continues(self) -> None:
        store = InMemoryReportStore(failing_titles=("Broken",))

        report = _service().run_import(
            content=csv_bytes("Title", "Fine", "Broken", "Also Fine"),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
        )

        self.assertEqual(report.stats.inserted, 2)
        self.assertEqual(report.stats.failed, 1)
        self.assertEqual(report.errors[0].row_number, 3)
        self.assertEqual(report.errors[0].error_kind, ERROR_PERSISTENCE_FAILURE)

    def test_lookup_failure_is_recorded(self) -> None:
        store = InMemoryReportStore(failing_lookups=("Flaky",))

        report = _service().run_import(
            content=csv_bytes("Title", "Flaky", "Steady"),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
        )

        self.assertEqual(report.stats.failed, 1)
        self.assertEqual(report.errors[0].error_kind, ERROR_LOOKUP_FAILURE)
        self.assertEqual(report.stats.inserted, 1)

    def test_slow_store_call_times_out(self) -> None:
        store = InMemoryReportStore(hanging_titles=("Slow",))
        try:
            report = _service(persistence_timeout_seconds=0.2).run_import(
                content=csv_bytes("Title", "Slow", "Quick"),
                kind=FileKind.DELIMITED,
                duplicate_mode="update",
                store=store,
            )
        finally:
            store.release.set()

        self.assertEqual(report.stats.failed, 1)
        self.assertEqual(report.errors[0].row_number, 2)
        self.assertEqual(report.errors[0].error_kind, ERROR_PERSISTENCE_TIMEOUT)
        self.assertEqual(report.stats.inserted, 1)

    def test_errors_are_bounded_sorted_and_counted(self) -> None:
        titles = [f"Broken {index}" for index in range(6)]
        store = InMemoryReportStore(failing_titles=tuple(titles))

        report = _service(max_row_errors=2).run_import(
            content=csv_bytes("Title", *titles),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
        )

        self.assertEqual(report.stats.failed, 6)
        self.assertEqual([error.row_number for error in report.errors], [2, 3])

    def test_cancel_before_start_processes_nothing(self) -> None:
        cancel = threading.Event()
        cancel.set()
        store = InMemoryReportStore()

        report = _service().run_import(
            content=csv_bytes("Title", "One", "Two"),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
            cancel_event=cancel,
        )

        self.assertTrue(report.cancelled)
        self.assertEqual(report.stats.total, 0)
        self.assertEqual(store.records, {})

    def test_cancel_midway_keeps_finished_rows(self) -> None:
        cancel = threading.Event()

        class CancellingStore(InMemoryReportStore):
            def insert(self, record):  # type: ignore[no-untyped-def]
                cancel.set()
                return super().insert(record)

        store = CancellingStore()
        titles = [f"Report {index}" for index in range(20)]

        report = _service(max_workers=1).run_import(
            content=csv_bytes("Title", *titles),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
            cancel_event=cancel,
        )

        self.assertTrue(report.cancelled)
        self.assertGreaterEqual(report.stats.total, 1)
        self.assertLess(report.stats.total, len(titles))
        self.assertEqual(report.stats.inserted, len(store.inserted_ids))

    def test_reports_unmapped_headers_and_created_categories(self) -> None:
        store = InMemoryReportStore(category_counts={"category": 1})

        report = _service().run_import(
            content=csv_bytes("Title,Category,Internal Notes", "EV Market,Automotive,ignore me"),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
        )

        self.assertEqual(report.unmapped_headers, ("Internal Notes",))
        self.assertEqual(report.categories_created, {"category": 1})

    def test_markup_fields_are_stored_sanitized(self) -> None:
        store = InMemoryReportStore()

        _service().run_import(
            content=csv_bytes('Title,Summary', 'EV Market,"<p>Safe</p><script>bad()</script>"'),
            kind=FileKind.DELIMITED,
            duplicate_mode="update",
            store=store,
        )

        (record,) = store.records.values()
        self.assertEqual(record.to_payload()["reportDescription"], "<p>Safe</p>")


class TestWholeFileFailures(unittest.TestCase):
    def test_oversize_file_is_rejected(self) -> None:
        with self.assertRaises(OversizeFileError):
            _service(max_file_bytes=10).run_import(
                content=csv_bytes("Title", "A long enough report title"),
                kind=FileKind.DELIMITED,
                duplicate_mode="update",
                store=InMemoryReportStore(),
            )

    def test_malformed_file_is_rejected(self) -> None:
        with self.assertRaises(MalformedFileError):
            _service().run_import(
                content=b"Title\n\xff\xfe\n",
                kind=FileKind.DELIMITED,
                duplicate_mode="update",
                store=InMemoryReportStore(),
            )

    def test_missing_title_column_is_rejected_before_any_write(self) -> None:
        store = InMemoryReportStore()
        with self.assertRaises(SchemaMappingError):
            _service().run_import(
                content=csv_bytes("Author,Pages", "Jane,10"),
                kind=FileKind.DELIMITED,
                duplicate_mode="update",
                store=store,
            )
        self.assertEqual(store.records, {})

    def test_unknown_duplicate_mode_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            _service().run_import(
                content=csv_bytes("Title", "EV Market"),
                kind=FileKind.DELIMITED,
                duplicate_mode="merge",
                store=InMemoryReportStore(),
            )


class TestCheckDuplicates(unittest.TestCase):
    def test_dry_run_classifies_without_writing(self) -> None:
        store = InMemoryReportStore()
        existing_id = store.seed(title="Global EV Market")

        report = _service().check_duplicates(
            content=csv_bytes("Title", "Global EV Market", ",", "Brand New"),
            kind=FileKind.DELIMITED,
            duplicate_mode="skip",
            store=store,
        )

        self.assertEqual(store.inserted_ids, [])
        self.assertEqual(store.updated_ids, [])
        first, blank, second = report.rows
        self.assertEqual((first.kind, first.existing_id), (ClassificationKind.SKIP_AS_DUPLICATE, existing_id))
        self.assertEqual(second.kind, ClassificationKind.INSERT)
        self.assertIsNone(second.existing_id)
        self.assertIsNone(blank.kind)
        self.assertEqual(blank.reason, "blank row")


if __name__ == "__main__":
    unittest.main()
