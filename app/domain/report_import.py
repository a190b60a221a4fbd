"""
app/domain/report_import.py

Domain models used by the report import flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from app.markup.sanitizer import SanitizedMarkup


class FileKind(str, Enum):
    DELIMITED = "delimited"
    WORKBOOK = "workbook"


class DuplicateMode(str, Enum):
    UPDATE = "update"
    SKIP = "skip"
    CREATE = "create"

    @classmethod
    def parse(cls, value: str | DuplicateMode | None, default: DuplicateMode | None = None) -> DuplicateMode:
        """
        Resolve a mode from user input; raises ValueError for unknown values.
        """

        if isinstance(value, cls):
            return value
        if value is None or not str(value).strip():
            if default is None:
                raise ValueError("Duplicate-handling mode is required.")
            return default
        normalized = str(value).strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        allowed = ", ".join(mode.value for mode in cls)
        raise ValueError(f"Unsupported duplicate-handling mode {value!r}. Allowed values: {allowed}.")


@dataclass(frozen=True)
class RawRow:
    """
    One data row; ``cells`` keeps column order.
    """

    row_number: int
    cells: Mapping[str, str]

    def is_blank(self) -> bool:
        return all(not value.strip() for value in self.cells.values())


@dataclass(frozen=True)
class TabularData:
    headers: tuple[str, ...]
    rows: tuple[RawRow, ...]


@dataclass(frozen=True)
class FieldMap:
    """
    Resolved header -> canonical field mapping for one import.
    """

    header_to_field: Mapping[str, str]
    canonical_to_source: Mapping[str, str]
    source_headers: tuple[str, ...]
    unmapped_headers: tuple[str, ...] = ()
    shadowed_headers: tuple[str, ...] = ()
    match_strategies: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "header_to_field", MappingProxyType(dict(self.header_to_field)))
        object.__setattr__(self, "canonical_to_source", MappingProxyType(dict(self.canonical_to_source)))
        object.__setattr__(self, "match_strategies", MappingProxyType(dict(self.match_strategies)))

    @property
    def target_fields(self) -> tuple[str, ...]:
        return tuple(self.canonical_to_source)


@dataclass(frozen=True)
class CanonicalRecord:
    """
    Typed values for one input row, keyed by canonical field name.
    """

    row_number: int
    values: Mapping[str, Any]

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    @property
    def title(self) -> str:
        return str(self.values.get("title") or "")

    @property
    def report_code(self) -> str:
        return str(self.values.get("reportCode") or "")

    def to_payload(self) -> dict[str, Any]:
        """
        Flatten to storage-ready values; markup becomes its HTML source.
        """

        payload: dict[str, Any] = {}
        for name, value in self.values.items():
            if isinstance(value, SanitizedMarkup):
                payload[name] = value.html
            elif isinstance(value, list):
                payload[name] = list(value)
            else:
                payload[name] = value
        return payload


@dataclass(frozen=True)
class RowWarning:
    """
    Soft, non-fatal problem found while coercing one row.
    """

    row_number: int
    message: str
    column: str | None = None
    value: str | None = None
    kind: str = "coercion_warning"


@dataclass(frozen=True)
class RowError:
    """
    Hard failure of one row; the batch continues.
    """

    row_number: int
    error_kind: str
    detail: str


class OutcomeKind(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportOutcome:
    row_number: int
    kind: OutcomeKind
    record_id: str | None = None
    reason: str | None = None
    error_kind: str | None = None
    detail: str | None = None
    warnings: tuple[RowWarning, ...] = ()

    @classmethod
    def inserted(cls, row_number: int, record_id: str, warnings: tuple[RowWarning, ...] = ()) -> "ImportOutcome":
        return cls(row_number=row_number, kind=OutcomeKind.INSERTED, record_id=record_id, warnings=warnings)

    @classmethod
    def updated(cls, row_number: int, record_id: str, warnings: tuple[RowWarning, ...] = ()) -> "ImportOutcome":
        return cls(row_number=row_number, kind=OutcomeKind.UPDATED, record_id=record_id, warnings=warnings)

    @classmethod
    def skipped(cls, row_number: int, reason: str, warnings: tuple[RowWarning, ...] = ()) -> "ImportOutcome":
        return cls(row_number=row_number, kind=OutcomeKind.SKIPPED, reason=reason, warnings=warnings)

    @classmethod
    def failed(
        cls,
        row_number: int,
        error_kind: str,
        detail: str,
        warnings: tuple[RowWarning, ...] = (),
    ) -> "ImportOutcome":
        return cls(
            row_number=row_number,
            kind=OutcomeKind.FAILED,
            error_kind=error_kind,
            detail=detail,
            warnings=warnings,
        )

    def to_error(self) -> RowError | None:
        if self.kind is not OutcomeKind.FAILED:
            return None
        return RowError(
            row_number=self.row_number,
            error_kind=self.error_kind or "unknown",
            detail=self.detail or "",
        )


@dataclass(frozen=True)
class ImportStats:
    """
    Aggregate counts; ``+`` is associative and commutative.
    """

    total: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0

    def __add__(self, other: "ImportStats") -> "ImportStats":
        if not isinstance(other, ImportStats):
            return NotImplemented
        return ImportStats(
            total=self.total + other.total,
            inserted=self.inserted + other.inserted,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
            elapsed_seconds=max(self.elapsed_seconds, other.elapsed_seconds),
        )

    @classmethod
    def from_outcome(cls, outcome: ImportOutcome) -> "ImportStats":
        return cls(
            total=1,
            inserted=int(outcome.kind is OutcomeKind.INSERTED),
            updated=int(outcome.kind is OutcomeKind.UPDATED),
            skipped=int(outcome.kind is OutcomeKind.SKIPPED),
            failed=int(outcome.kind is OutcomeKind.FAILED),
        )

    def with_elapsed(self, elapsed_seconds: float) -> "ImportStats":
        return replace(self, elapsed_seconds=elapsed_seconds)


@dataclass(frozen=True)
class NaturalKey:
    """
    Business key used for duplicate detection; ``value`` is trimmed and casefolded.
    """

    field_name: str
    value: str


class ClassificationKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    SKIP_AS_DUPLICATE = "skip_as_duplicate"


@dataclass(frozen=True)
class DuplicateMatch:
    key: NaturalKey | None
    existing_id: str | None = None

    @property
    def found(self) -> bool:
        return self.existing_id is not None


@dataclass(frozen=True)
class Classification:
    kind: ClassificationKind
    existing_id: str | None = None


@dataclass(frozen=True)
class RowClassification:
    """
    Dry-run classification of one row.
    """

    row_number: int
    kind: ClassificationKind | None
    natural_key: str | None = None
    existing_id: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ImportReport:
    """
    End-of-run import summary returned to the caller.
    """

    stats: ImportStats
    errors: list[RowError] = field(default_factory=list)
    warnings: list[RowWarning] = field(default_factory=list)
    categories_created: dict[str, int] = field(default_factory=dict)
    unmapped_headers: tuple[str, ...] = ()
    cancelled: bool = False


@dataclass(frozen=True)
class DuplicateCheckReport:
    rows: list[RowClassification] = field(default_factory=list)
    unmapped_headers: tuple[str, ...] = ()
