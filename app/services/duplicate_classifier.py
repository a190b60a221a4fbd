"""
app/services/duplicate_classifier.py

Natural-key duplicate detection and per-mode classification.

Matching is an exact comparison after trimming and case-folding; there is no
fuzzy matching, so "Global EV Market" and "Global EV Market Report" are
distinct records.
"""

from __future__ import annotations

from typing import Callable, Optional

from app.domain.report_import import (
    CanonicalRecord,
    Classification,
    ClassificationKind,
    DuplicateMatch,
    DuplicateMode,
    NaturalKey,
)

NaturalKeyLookup = Callable[[NaturalKey], Optional[str]]

NATURAL_KEY_FIELDS: tuple[str, ...] = ("reportCode", "title")


def normalize_key_value(value: object) -> str:
    return str(value or "").strip().casefold()


def natural_key_for(record: CanonicalRecord) -> NaturalKey | None:
    """
    Return the record's natural key: report code when present, else title.
    """

    for field_name in NATURAL_KEY_FIELDS:
        value = normalize_key_value(record.get(field_name))
        if value:
            return NaturalKey(field_name=field_name, value=value)
    return None


class DuplicateClassifier:
    """
    Classifies records as insert, update or skip for a duplicate-handling mode.
    """

    def find_match(self, record: CanonicalRecord, lookup: NaturalKeyLookup) -> DuplicateMatch:
        key = natural_key_for(record)
        if key is None:
            return DuplicateMatch(key=None)
        return DuplicateMatch(key=key, existing_id=lookup(key))

    @staticmethod
    def classify(match: DuplicateMatch, mode: DuplicateMode) -> Classification:
        if not match.found:
            return Classification(kind=ClassificationKind.INSERT)
        if mode is DuplicateMode.UPDATE:
            return Classification(kind=ClassificationKind.UPDATE, existing_id=match.existing_id)
        if mode is DuplicateMode.SKIP:
            return Classification(kind=ClassificationKind.SKIP_AS_DUPLICATE, existing_id=match.existing_id)
        return Classification(kind=ClassificationKind.INSERT)
