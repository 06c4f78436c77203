"""Decode an uploaded spreadsheet into ordered :class:`RowRecord` values.

Two formats are understood: delimited text (``csv``) and an OOXML workbook
(``xlsx``). Every cell comes out as a string; numeric cells are stringified
so ``5.0`` reads back as ``"5"``.
"""

from __future__ import annotations

import csv
import io
import zipfile
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from pathlib import PurePath
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import ParseError
from .logging import get_logger
from .models import RowRecord

FORMAT_CSV = "csv"
FORMAT_XLSX = "xlsx"
_ZIP_MAGIC = b"PK\x03\x04"
_SUFFIX_FORMATS = {
    ".csv": FORMAT_CSV,
    ".txt": FORMAT_CSV,
    ".xlsx": FORMAT_XLSX,
    ".xlsm": FORMAT_XLSX,
}


def sniff_format(data: bytes, filename: str | None = None) -> str:
    """Guess the format from the filename suffix, then from the content."""
    if filename:
        suffix = PurePath(filename).suffix.lower()
        if suffix in _SUFFIX_FORMATS:
            return _SUFFIX_FORMATS[suffix]
    return FORMAT_XLSX if data.startswith(_ZIP_MAGIC) else FORMAT_CSV


def cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).replace("\xa0", " ").strip()


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    # cp1252 leaves a few bytes undefined; latin-1 decodes anything
    try:
        text, encoding = data.decode("cp1252"), "cp1252"
    except UnicodeDecodeError:
        text, encoding = data.decode("latin-1"), "latin-1"
    get_logger().warning(
        f"Uploaded file is not valid UTF-8; decoded as {encoding}", encoding=encoding
    )
    return text


def _csv_rows(data: bytes) -> list[list[str]]:
    text = _decode_text(data)
    if "\x00" in text:
        raise ParseError("The uploaded file is not a valid CSV file")
    first_line = text.split("\n", 1)[0]
    dialect: Any = csv.excel
    if "," not in first_line:
        try:
            dialect = csv.Sniffer().sniff(first_line, delimiters=";\t")
        except csv.Error:
            dialect = csv.excel
    try:
        return [list(row) for row in csv.reader(io.StringIO(text), dialect)]
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV content: {exc}") from exc


def _xlsx_rows(data: bytes) -> list[list[Any]]:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ParseError(f"Failed to read the spreadsheet: {exc}") from exc
    try:
        if not workbook.sheetnames:
            raise ParseError("The uploaded workbook has no worksheets")
        sheet = workbook[workbook.sheetnames[0]]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _build_records(rows: Sequence[Sequence[Any]]) -> list[RowRecord]:
    cleaned = [[cell_to_str(c) for c in row] for row in rows]
    if not any(any(row) for row in cleaned):
        raise ParseError("The uploaded file is empty or could not be read")
    header = cleaned[0]
    if not any(header):
        raise ParseError("The uploaded file has no header row")
    seen: set[str] = set()
    for name in header:
        if name and name in seen:
            raise ParseError(f"Duplicate column '{name}' in header row")
        seen.add(name)

    records: list[RowRecord] = []
    # Blank rows are dropped but still count, so row numbers track the sheet.
    for row_number, raw in enumerate(cleaned[1:], start=1):
        if not any(raw):
            continue
        values = {
            name: (raw[idx] if idx < len(raw) else "")
            for idx, name in enumerate(header)
            if name
        }
        records.append(RowRecord(row_number=row_number, values=values))
    if not records:
        raise ParseError("The uploaded file contains a header row but no data rows")
    return records


def read_rows(
    data: bytes, file_format: str | None = None, filename: str | None = None
) -> list[RowRecord]:
    """Parse ``data`` into row records; raises :class:`ParseError` on failure."""
    if not data:
        raise ParseError("The uploaded file is empty")
    fmt = (file_format or sniff_format(data, filename)).lower()
    if fmt == FORMAT_CSV:
        rows: Iterable[Sequence[Any]] = _csv_rows(data)
    elif fmt == FORMAT_XLSX:
        rows = _xlsx_rows(data)
    else:
        raise ParseError(f"Unsupported file format '{file_format}'")
    return _build_records(list(rows))


def header_columns(records: Sequence[RowRecord]) -> list[str]:
    return list(records[0].values.keys()) if records else []


__all__ = ["read_rows", "sniff_format", "cell_to_str", "header_columns", "FORMAT_CSV", "FORMAT_XLSX"]
