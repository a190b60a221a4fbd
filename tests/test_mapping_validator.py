from __future__ import annotations

import unittest

from app.validators.mapping_validator import MappingErrorDetail, MappingValidator, SchemaMappingError


class TestMappingValidator(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = MappingValidator(
            required_fields=("title",),
            canonical_fields=("title", "author", "numberOfPages"),
        )

    def test_valid_mapping_passes(self) -> None:
        self.validator.validate(
            mapping={"title": "Report Title", "author": "Analyst"},
            source_headers=["Report Title", "Analyst"],
        )

    def test_required_field_missing_names_the_column(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.validator.validate(mapping={"author": "Analyst"}, source_headers=["Analyst"])

        self.assertEqual(ctx.exception.message, "Import file is missing required columns: title.")
        payload = ctx.exception.to_dict()
        self.assertEqual(payload["errors"][0]["code"], "required_field_unmapped")
        self.assertEqual(payload["errors"][0]["context"], {"source_headers": ["Analyst"]})

    def test_unknown_field_and_missing_source_column(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.validator.validate(
                mapping={"title": "Title", "bogus": "Title", "author": "Writer"},
                source_headers=["Title"],
            )

        codes = [error.code for error in ctx.exception.errors]
        self.assertEqual(codes, ["invalid_canonical_field", "unknown_source_column"])
        self.assertEqual(ctx.exception.message, "Import column mapping is invalid.")

    def test_pre_errors_are_reported_first(self) -> None:
        pre_error = MappingErrorDetail(code="invalid_override_field", message="bad override")

        with self.assertRaises(SchemaMappingError) as ctx:
            self.validator.validate(
                mapping={"title": "Title"},
                source_headers=["Title"],
                pre_errors=[pre_error],
            )

        self.assertEqual(ctx.exception.errors, (pre_error,))


if __name__ == "__main__":
    unittest.main()
