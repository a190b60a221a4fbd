"""
app/readers/tabular_reader.py

Decode delimited text and spreadsheet workbooks into header + row records.

Workbook cells are converted with ``str()`` whatever their type, so a numeric
cell holding 12 arrives as "12" or "12.0" depending on how the sheet stored
it, and dates arrive as "2024-01-05 00:00:00". Downstream coercion tolerates
both; the imprecision is accepted rather than corrected here.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from typing import Any, Iterable, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.domain.report_import import FileKind, RawRow, TabularData

logger = logging.getLogger(__name__)

SNIFF_DELIMITERS = ",;\t|"
SNIFF_SAMPLE_BYTES = 64 * 1024
ZIP_MAGIC = b"PK\x03\x04"

DELIMITED_EXTENSIONS = (".csv", ".tsv", ".txt")
WORKBOOK_EXTENSIONS = (".xlsx", ".xlsm")
DELIMITED_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "text/plain",
    "text/tab-separated-values",
}
WORKBOOK_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
}


class TabularReadError(ValueError):
    """
    Base class for whole-file read failures.
    """


class MalformedFileError(TabularReadError):
    """
    Raised when file bytes cannot be decoded or parsed.
    """


class EmptyFileError(TabularReadError):
    """
    Raised when a file has no header row or no data rows.
    """


class OversizeFileError(TabularReadError):
    """
    Raised when a file exceeds the configured size cap.
    """

    def __init__(self, *, size_bytes: int, max_bytes: int) -> None:
        super().__init__(f"File is {size_bytes} bytes; the maximum allowed is {max_bytes} bytes.")
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class UnsupportedFileKindError(TabularReadError):
    """
    Raised when the upload is neither delimited text nor a workbook.
    """


def ensure_within_size_limit(content: bytes, *, max_bytes: int) -> None:
    if len(content) > max_bytes:
        raise OversizeFileError(size_bytes=len(content), max_bytes=max_bytes)


def detect_file_kind(
    *,
    filename: str | None,
    content_type: str | None = None,
    content: bytes | None = None,
) -> FileKind:
    """
    Resolve the file kind by extension, then MIME type, then zip magic bytes.
    """

    name = (filename or "").strip().lower()
    if name.endswith(WORKBOOK_EXTENSIONS):
        return FileKind.WORKBOOK
    if name.endswith(DELIMITED_EXTENSIONS):
        return FileKind.DELIMITED

    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime in WORKBOOK_CONTENT_TYPES:
        return FileKind.WORKBOOK
    if mime in DELIMITED_CONTENT_TYPES:
        return FileKind.DELIMITED

    if content is not None:
        return FileKind.WORKBOOK if content.startswith(ZIP_MAGIC) else FileKind.DELIMITED

    raise UnsupportedFileKindError(
        "Only delimited text (.csv, .tsv, .txt) and workbook (.xlsx) files are supported."
    )


class TabularReader:
    """
    Produces an ordered header tuple and RawRow records from file bytes.
    """

    def read(self, content: bytes, kind: FileKind) -> TabularData:
        if kind is FileKind.WORKBOOK:
            matrix = self._read_workbook(content)
        else:
            matrix = self._read_delimited(content)
        return self._to_tabular(matrix)

    def _read_delimited(self, content: bytes) -> list[list[str]]:
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise MalformedFileError("Delimited file must be UTF-8 encoded.") from exc
        if "\x00" in text:
            raise MalformedFileError("Delimited file contains NUL bytes.")

        dialect: type[csv.Dialect] | csv.Dialect = csv.excel
        sample = text[:SNIFF_SAMPLE_BYTES]
        if sample.strip():
            try:
                dialect = csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS)
            except csv.Error:
                dialect = csv.excel

        try:
            return [list(row) for row in csv.reader(io.StringIO(text, newline=""), dialect)]
        except csv.Error as exc:
            raise MalformedFileError(f"Invalid delimited file: {exc}") from exc

    def _read_workbook(self, content: bytes) -> list[list[str]]:
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            raise MalformedFileError(f"Invalid workbook: {exc}") from exc

        try:
            if not workbook.worksheets:
                raise EmptyFileError("Workbook contains no sheets.")
            sheet = workbook.worksheets[0]
            return [
                [self._cell_to_string(value) for value in row]
                for row in sheet.iter_rows(values_only=True)
            ]
        except EmptyFileError:
            raise
        except (zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            raise MalformedFileError(f"Invalid workbook: {exc}") from exc
        finally:
            workbook.close()

    @staticmethod
    def _cell_to_string(value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    def _to_tabular(self, matrix: Sequence[Sequence[str]]) -> TabularData:
        if not matrix or not any(cell.strip() for cell in matrix[0]):
            raise EmptyFileError("File has no header row.")

        columns = [
            (index, header.strip())
            for index, header in enumerate(matrix[0])
            if header and header.strip()
        ]
        headers = tuple(header for _, header in columns)

        rows = [
            RawRow(
                row_number=offset + 2,
                cells={header: self._cell_at(values, index) for index, header in columns},
            )
            for offset, values in enumerate(matrix[1:])
        ]
        rows = self._drop_trailing_blank_rows(rows)
        if not rows:
            raise EmptyFileError("File contains a header row but no data rows.")

        logger.debug("Read tabular file headers=%d rows=%d", len(headers), len(rows))
        return TabularData(headers=headers, rows=tuple(rows))

    @staticmethod
    def _cell_at(values: Sequence[str], index: int) -> str:
        return values[index] if index < len(values) else ""

    @staticmethod
    def _drop_trailing_blank_rows(rows: Iterable[RawRow]) -> list[RawRow]:
        kept = list(rows)
        while kept and kept[-1].is_blank():
            kept.pop()
        return kept
