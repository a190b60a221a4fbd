"""
app/validators/value_coercer.py

Total, per-field coercion of raw cell strings into typed report values.

Every coercion yields a value. When a fallback fires the row gets a soft
RowWarning instead of failing:

    integer  -> leading digits, else 1
    money    -> digits and '.' only, else Decimal("0")
    date     -> ISO-8601 in UTC, else the import timestamp
    markup   -> converted (plain text only) then sanitized
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Mapping

from app.domain.report_import import CanonicalRecord, FieldMap, RowWarning
from app.markup.converter import TextToMarkupConverter
from app.markup.parser import looks_like_markup
from app.markup.sanitizer import MarkupSanitizer, SanitizedMarkup


class FieldType(str, Enum):
    TEXT = "text"
    MARKUP = "markup"
    INTEGER = "integer"
    MONEY = "money"
    DATE = "date"
    TAGS = "tags"
    BOOLEAN = "boolean"
    STATUS = "status"


FIELD_TYPES: dict[str, FieldType] = {
    "title": FieldType.TEXT,
    "reportCode": FieldType.TEXT,
    "subTitle": FieldType.TEXT,
    "author": FieldType.TEXT,
    "category": FieldType.TEXT,
    "subCategory": FieldType.TEXT,
    "reportDescription": FieldType.MARKUP,
    "tableOfContents": FieldType.MARKUP,
    "segmentation": FieldType.MARKUP,
    "companies": FieldType.MARKUP,
    "content": FieldType.MARKUP,
    "numberOfPages": FieldType.INTEGER,
    "excelDataPackLicense": FieldType.MONEY,
    "singleUserLicense": FieldType.MONEY,
    "enterpriseLicensePrice": FieldType.MONEY,
    "publishedAt": FieldType.DATE,
    "tags": FieldType.TAGS,
    "featured": FieldType.BOOLEAN,
    "popular": FieldType.BOOLEAN,
    "status": FieldType.STATUS,
    "slug": FieldType.TEXT,
    "metaTitle": FieldType.TEXT,
    "metaDescription": FieldType.TEXT,
    "metaKeywords": FieldType.TEXT,
}

INTEGER_FALLBACK = 1
MONEY_FALLBACK = Decimal("0")
DEFAULT_STATUS = "draft"
ALLOWED_STATUSES: frozenset[str] = frozenset({"draft", "published"})
TRUE_VALUES: frozenset[str] = frozenset({"true", "yes", "y", "1", "on"})
FALSE_VALUES: frozenset[str] = frozenset({"", "false", "no", "n", "0", "off"})

_LEADING_DIGITS_RE = re.compile(r"^\s*(\d+)")
_MONEY_NOISE_RE = re.compile(r"[^\d.]")
_TAG_SPLIT_RE = re.compile(r"[,;]+")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_datetime(value: str) -> datetime | None:
    """
    Parse ISO-8601 (including a trailing Z) into an aware UTC datetime.
    """

    text = value.strip()
    if not text:
        return None
    if text[-1] in "Zz":
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def split_tags(value: str) -> list[str]:
    tags: list[str] = []
    for part in _TAG_SPLIT_RE.split(value):
        tag = part.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class ValueCoercer:
    """
    Applies the declared field type to every mapped cell of one row.
    """

    def __init__(
        self,
        *,
        converter: TextToMarkupConverter | None = None,
        sanitizer: MarkupSanitizer | None = None,
        clock: Callable[[], datetime] = _utc_now,
        field_types: Mapping[str, FieldType] | None = None,
    ) -> None:
        self._converter = converter or TextToMarkupConverter()
        self._sanitizer = sanitizer or MarkupSanitizer()
        self._clock = clock
        self._field_types = dict(field_types or FIELD_TYPES)

    def coerce(
        self,
        mapped_row: Mapping[str, str],
        row_number: int,
        field_map: FieldMap,
    ) -> tuple[CanonicalRecord, list[RowWarning]]:
        values: dict[str, Any] = {}
        warnings: list[RowWarning] = []

        for canonical_field in field_map.target_fields:
            raw = mapped_row.get(canonical_field) or ""
            field_type = self._field_types.get(canonical_field, FieldType.TEXT)
            value, message = self._coerce_value(field_type, raw)
            values[canonical_field] = value
            if message is not None:
                warnings.append(
                    RowWarning(
                        row_number=row_number,
                        message=message,
                        column=field_map.canonical_to_source.get(canonical_field),
                        value=raw,
                        kind="sanitization_degraded" if field_type is FieldType.MARKUP else "coercion_warning",
                    )
                )

        return CanonicalRecord(row_number=row_number, values=values), warnings

    def _coerce_value(self, field_type: FieldType, raw: str) -> tuple[Any, str | None]:
        if field_type is FieldType.INTEGER:
            return self.coerce_integer(raw)
        if field_type is FieldType.MONEY:
            return self.coerce_money(raw)
        if field_type is FieldType.DATE:
            return self.coerce_date(raw)
        if field_type is FieldType.MARKUP:
            return self.coerce_markup(raw)
        if field_type is FieldType.TAGS:
            return split_tags(raw), None
        if field_type is FieldType.BOOLEAN:
            return self.coerce_boolean(raw)
        if field_type is FieldType.STATUS:
            return self.coerce_status(raw)
        return raw.strip(), None

    # ------------------------------------------------------------------
    # Field coercions: each returns (value, warning message or None)
    # ------------------------------------------------------------------

    @staticmethod
    def coerce_integer(raw: str) -> tuple[int, str | None]:
        if not raw.strip():
            return INTEGER_FALLBACK, None
        match = _LEADING_DIGITS_RE.match(raw)
        if match is None:
            return INTEGER_FALLBACK, f"Not a number; defaulted to {INTEGER_FALLBACK}."
        return int(match.group(1)), None

    @staticmethod
    def coerce_money(raw: str) -> tuple[Decimal, str | None]:
        remnant = _MONEY_NOISE_RE.sub("", raw)
        if not remnant:
            if raw.strip():
                return MONEY_FALLBACK, "No digits found in amount; defaulted to 0."
            return MONEY_FALLBACK, None
        try:
            value = Decimal(remnant)
        except InvalidOperation:
            return MONEY_FALLBACK, "Invalid amount; defaulted to 0."
        return value, None

    def coerce_date(self, raw: str) -> tuple[datetime | None, str | None]:
        if not raw.strip():
            return None, None
        parsed = parse_iso_datetime(raw)
        if parsed is None:
            return self._clock(), "Unparsable date; defaulted to the import time."
        return parsed, None

    def coerce_markup(self, raw: str) -> tuple[SanitizedMarkup, str | None]:
        if not raw.strip():
            return SanitizedMarkup.empty(), None
        if looks_like_markup(raw):
            sanitized = self._sanitizer.sanitize(raw)
        else:
            sanitized = self._sanitizer.sanitize(self._converter.convert(raw))
        if sanitized.degraded:
            return sanitized, "Markup could not be sanitized structurally; stored as plain text."
        return sanitized, None

    @staticmethod
    def coerce_boolean(raw: str) -> tuple[bool, str | None]:
        normalized = raw.strip().lower()
        if normalized in TRUE_VALUES:
            return True, None
        if normalized in FALSE_VALUES:
            return False, None
        return False, "Unrecognised boolean; defaulted to false."

    @staticmethod
    def coerce_status(raw: str) -> tuple[str, str | None]:
        normalized = raw.strip().lower()
        if not normalized:
            return DEFAULT_STATUS, None
        if normalized in ALLOWED_STATUSES:
            return normalized, None
        return DEFAULT_STATUS, f"Unknown status; defaulted to {DEFAULT_STATUS}."
