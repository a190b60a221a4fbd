"""
In-memory collaborators shared by the import tests.
"""

from __future__ import annotations

import threading

from app.domain.report_import import CanonicalRecord, NaturalKey
from app.services.duplicate_classifier import normalize_key_value
from app.storage.base import ReportStore, ReportStoreError


class InMemoryReportStore(ReportStore):
    """
    Thread-safe dict-backed store with hooks for failure scenarios.
    """

    def __init__(
        self,
        *,
        failing_titles: tuple[str, ...] = (),
        hanging_titles: tuple[str, ...] = (),
        failing_lookups: tuple[str, ...] = (),
        category_counts: dict[str, int] | None = None,
    ) -> None:
        self.records: dict[str, CanonicalRecord] = {}
        self.inserted_ids: list[str] = []
        self.updated_ids: list[str] = []
        self.release = threading.Event()
        self._keys: dict[tuple[str, str], str] = {}
        self._failing_titles = set(failing_titles)
        self._hanging_titles = set(hanging_titles)
        self._failing_lookups = {normalize_key_value(value) for value in failing_lookups}
        self._category_counts = dict(category_counts or {})
        self._lock = threading.Lock()
        self._next_id = 0

    def seed(self, *, title: str, report_code: str | None = None) -> str:
        with self._lock:
            self._next_id += 1
            record_id = f"existing-{self._next_id}"
        self._keys[("title", normalize_key_value(title))] = record_id
        if report_code:
            self._keys[("reportCode", normalize_key_value(report_code))] = record_id
        return record_id

    def find_by_natural_key(self, key: NaturalKey) -> str | None:
        if key.value in self._failing_lookups:
            raise ReportStoreError(f"lookup failed for {key.value}")
        with self._lock:
            return self._keys.get((key.field_name, key.value))

    def insert(self, record: CanonicalRecord) -> str:
        self._before_write(record)
        with self._lock:
            self._next_id += 1
            record_id = f"report-{self._next_id}"
            self.records[record_id] = record
            self.inserted_ids.append(record_id)
        return record_id

    def update(self, existing_id: str, record: CanonicalRecord) -> str:
        self._before_write(record)
        with self._lock:
            self.records[existing_id] = record
            self.updated_ids.append(existing_id)
        return existing_id

    def created_category_counts(self) -> dict[str, int]:
        return dict(self._category_counts)

    def _before_write(self, record: CanonicalRecord) -> None:
        if record.title in self._hanging_titles:
            self.release.wait(timeout=5)
        if record.title in self._failing_titles:
            raise ReportStoreError(f"database rejected {record.title}")


def csv_bytes(*lines: str) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")
