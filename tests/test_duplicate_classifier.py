from __future__ import annotations

import unittest

from app.domain.report_import import (
    CanonicalRecord,
    ClassificationKind,
    DuplicateMatch,
    DuplicateMode,
    NaturalKey,
)
from app.services.duplicate_classifier import DuplicateClassifier, natural_key_for


def _record(**values: object) -> CanonicalRecord:
    return CanonicalRecord(row_number=2, values=values)


class TestNaturalKey(unittest.TestCase):
    def test_report_code_preferred_over_title(self) -> None:
        key = natural_key_for(_record(title="EV Market", reportCode="  EVB-001 "))
        self.assertEqual(key, NaturalKey(field_name="reportCode", value="evb-001"))

    def test_title_used_when_code_blank(self) -> None:
        key = natural_key_for(_record(title="  Global EV Market ", reportCode=""))
        self.assertEqual(key, NaturalKey(field_name="title", value="global ev market"))

    def test_no_key_without_title_or_code(self) -> None:
        self.assertIsNone(natural_key_for(_record(author="Jane")))


class TestDuplicateClassifier(unittest.TestCase):
    def setUp(self) -> None:
        self.classifier = DuplicateClassifier()

    def test_find_match_passes_normalized_key_to_lookup(self) -> None:
        seen: list[NaturalKey] = []

        def lookup(key: NaturalKey) -> str | None:
            seen.append(key)
            return "existing-1"

        match = self.classifier.find_match(_record(title="Global EV MARKET"), lookup)

        self.assertTrue(match.found)
        self.assertEqual(seen, [NaturalKey(field_name="title", value="global ev market")])

    def test_similar_titles_do_not_match(self) -> None:
        existing = {"global ev market": "existing-1"}

        match = self.classifier.find_match(
            _record(title="Global EV Market Report"),
            lambda key: existing.get(key.value),
        )

        self.assertFalse(match.found)

    def test_classification_per_mode(self) -> None:
        key = NaturalKey(field_name="title", value="solar")
        found = DuplicateMatch(key=key, existing_id="existing-7")
        missing = DuplicateMatch(key=key)

        self.assertIs(self.classifier.classify(missing, DuplicateMode.SKIP).kind, ClassificationKind.INSERT)
        update = self.classifier.classify(found, DuplicateMode.UPDATE)
        self.assertEqual((update.kind, update.existing_id), (ClassificationKind.UPDATE, "existing-7"))
        self.assertIs(self.classifier.classify(found, DuplicateMode.SKIP).kind, ClassificationKind.SKIP_AS_DUPLICATE)
        self.assertIs(self.classifier.classify(found, DuplicateMode.CREATE).kind, ClassificationKind.INSERT)


class TestDuplicateModeParsing(unittest.TestCase):
    def test_parse_is_case_insensitive_with_default(self) -> None:
        self.assertIs(DuplicateMode.parse(" SKIP "), DuplicateMode.SKIP)
        self.assertIs(DuplicateMode.parse(None, default=DuplicateMode.UPDATE), DuplicateMode.UPDATE)

    def test_unknown_mode_raises(self) -> None:
        with self.assertRaises(ValueError):
            DuplicateMode.parse("merge")
        with self.assertRaises(ValueError):
            DuplicateMode.parse("")


if __name__ == "__main__":
    unittest.main()
