from __future__ import annotations

import io
import unittest
from datetime import datetime
from unittest import mock

from openpyxl import Workbook

from app.domain.report_import import FileKind
from app.readers.tabular_reader import (
    EmptyFileError,
    MalformedFileError,
    OversizeFileError,
    TabularReader,
    UnsupportedFileKindError,
    detect_file_kind,
    ensure_within_size_limit,
)


def _workbook_bytes(*rows: list[object]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    other = workbook.create_sheet("Ignored")
    other.append(["Title"])
    other.append(["Should not be read"])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestDelimitedReading(unittest.TestCase):
    def setUp(self) -> None:
        self.reader = TabularReader()

    def test_strips_bom_and_numbers_rows_from_two(self) -> None:
        content = b"\xef\xbb\xbfTitle,Author\r\nEV Market,Jane\r\nSolar,Ravi\r\n"

        data = self.reader.read(content, FileKind.DELIMITED)

        self.assertEqual(data.headers, ("Title", "Author"))
        self.assertEqual([row.row_number for row in data.rows], [2, 3])
        self.assertEqual(dict(data.rows[0].cells), {"Title": "EV Market", "Author": "Jane"})

    def test_sniffs_semicolon_delimiter(self) -> None:
        content = b"Title;Author\nEV Market;Jane\nSolar;Ravi\n"

        data = self.reader.read(content, FileKind.DELIMITED)

        self.assertEqual(data.headers, ("Title", "Author"))
        self.assertEqual(data.rows[1].cells["Author"], "Ravi")

    def test_quoted_multiline_cell_is_kept(self) -> None:
        content = b'Title,Summary\nEV Market,"Line one\nLine two"\n'

        data = self.reader.read(content, FileKind.DELIMITED)

        self.assertEqual(data.rows[0].cells["Summary"], "Line one\nLine two")

    def test_trailing_blank_rows_are_dropped_interior_kept(self) -> None:
        content = b"Title,Author\nA,B\n,\nC,D\n,\n\n"

        data = self.reader.read(content, FileKind.DELIMITED)

        self.assertEqual([row.row_number for row in data.rows], [2, 3, 4])
        self.assertTrue(data.rows[1].is_blank())

    def test_short_rows_are_padded(self) -> None:
        content = b"Title,Author,Pages\nEV Market,Jane,120\nSolar\n"

        data = self.reader.read(content, FileKind.DELIMITED)

        self.assertEqual(dict(data.rows[1].cells), {"Title": "Solar", "Author": "", "Pages": ""})

    def test_header_only_file_is_empty(self) -> None:
        with self.assertRaises(EmptyFileError):
            self.reader.read(b"Title,Author\n", FileKind.DELIMITED)

    def test_zero_bytes_is_empty(self) -> None:
        with self.assertRaises(EmptyFileError):
            self.reader.read(b"", FileKind.DELIMITED)

    def test_invalid_utf8_is_malformed(self) -> None:
        with self.assertRaises(MalformedFileError):
            self.reader.read(b"Title\n\xff\xfe broken\n", FileKind.DELIMITED)

    def test_nul_bytes_are_malformed(self) -> None:
        with self.assertRaises(MalformedFileError):
            self.reader.read(b"Title,Author\nA\x00,B\n", FileKind.DELIMITED)


class TestWorkbookReading(unittest.TestCase):
    def setUp(self) -> None:
        self.reader = TabularReader()

    def test_reads_first_sheet_and_stringifies_cells(self) -> None:
        content = _workbook_bytes(
            ["Title", "Pages", "Published At"],
            ["EV Market", 120, datetime(2024, 1, 5)],
            ["Solar", None, None],
        )

        data = self.reader.read(content, FileKind.WORKBOOK)

        self.assertEqual(data.headers, ("Title", "Pages", "Published At"))
        self.assertEqual(len(data.rows), 2)
        self.assertEqual(data.rows[0].cells["Pages"], "120")
        self.assertEqual(data.rows[0].cells["Published At"], "2024-01-05 00:00:00")
        self.assertEqual(data.rows[1].cells["Pages"], "")

    def test_workbook_without_sheets_is_empty(self) -> None:
        sheetless = mock.Mock(worksheets=[])

        with mock.patch("app.readers.tabular_reader.load_workbook", return_value=sheetless):
            with self.assertRaises(EmptyFileError):
                self.reader.read(b"PK\x03\x04", FileKind.WORKBOOK)

        sheetless.close.assert_called_once_with()

    def test_corrupt_workbook_is_malformed(self) -> None:
        with self.assertRaises(MalformedFileError):
            self.reader.read(b"PK\x03\x04 definitely not a workbook", FileKind.WORKBOOK)


class TestFileKindDetection(unittest.TestCase):
    def test_extension_wins(self) -> None:
        self.assertIs(detect_file_kind(filename="reports.XLSX"), FileKind.WORKBOOK)
        self.assertIs(detect_file_kind(filename="reports.csv", content_type="application/pdf"), FileKind.DELIMITED)

    def test_falls_back_to_content_type(self) -> None:
        self.assertIs(detect_file_kind(filename="upload", content_type="text/csv; charset=utf-8"), FileKind.DELIMITED)

    def test_falls_back_to_zip_magic(self) -> None:
        self.assertIs(detect_file_kind(filename=None, content=b"PK\x03\x04rest"), FileKind.WORKBOOK)
        self.assertIs(detect_file_kind(filename=None, content=b"Title\n"), FileKind.DELIMITED)

    def test_unknown_kind_is_rejected(self) -> None:
        with self.assertRaises(UnsupportedFileKindError):
            detect_file_kind(filename="notes.pdf", content_type="application/pdf")

    def test_size_limit(self) -> None:
        ensure_within_size_limit(b"12345", max_bytes=5)
        with self.assertRaises(OversizeFileError) as ctx:
            ensure_within_size_limit(b"123456", max_bytes=5)
        self.assertEqual(ctx.exception.size_bytes, 6)


if __name__ == "__main__":
    unittest.main()
