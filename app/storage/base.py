"""
app/storage/base.py

Persistence collaborator interface used by the report import pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.report_import import CanonicalRecord, NaturalKey


class ReportStoreError(RuntimeError):
    """
    Raised when a store call fails; the import records it against the row.
    """


class ReportStore(ABC):
    """
    Storage abstraction for report lookups and writes.

    Implementations must be safe to call from several worker threads at once.
    """

    @abstractmethod
    def find_by_natural_key(self, key: NaturalKey) -> str | None:
        """
        Return the id of the stored report matching ``key``, if any.
        """

    @abstractmethod
    def insert(self, record: CanonicalRecord) -> str:
        """
        Persist a new report and return its id.
        """

    @abstractmethod
    def update(self, existing_id: str, record: CanonicalRecord) -> str:
        """
        Overwrite the mapped fields of an existing report and return its id.
        """

    def created_category_counts(self) -> dict[str, int]:
        """
        Number of lookup categories auto-created, keyed by category kind.
        """

        return {}
