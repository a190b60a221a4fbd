from __future__ import annotations

import csv
import io
import unittest

from app.domain.report_import import FileKind
from app.mappers.column_mapper import CANONICAL_FIELDS, ColumnMapper
from app.readers.tabular_reader import TabularReader
from app.services.template_export import build_import_template, template_headers


class TestImportTemplate(unittest.TestCase):
    def test_template_has_bom_headers_and_example_row(self) -> None:
        content = build_import_template()

        self.assertTrue(content.startswith(b"\xef\xbb\xbf"))
        rows = list(csv.reader(io.StringIO(content.decode("utf-8-sig"), newline="")))
        self.assertEqual(rows[0], template_headers())
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][0], "Global Electric Vehicle Battery Market")

    def test_template_headers_map_back_to_every_field(self) -> None:
        tabular = TabularReader().read(build_import_template(), FileKind.DELIMITED)

        field_map = ColumnMapper().build_field_map(tabular.headers)

        self.assertEqual(set(field_map.target_fields), set(CANONICAL_FIELDS))
        self.assertEqual(field_map.unmapped_headers, ())


if __name__ == "__main__":
    unittest.main()
