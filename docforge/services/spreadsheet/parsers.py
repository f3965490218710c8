"""File parsing for CSV and XLSX batch uploads."""

import codecs
import csv
import io
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from docforge.services.errors import MalformedFileError

from .constants import ALLOWED_EXTENSIONS, DECODE_CHUNK_SIZE, XLSX_MAGIC
from .converters import cell_to_text

# xml.etree and lxml parse errors both derive from SyntaxError
XML_ERRORS = (SyntaxError, ValueError, KeyError)


@dataclass
class RawRow:
    """One non-blank data row. ``index`` is the 0-based data-row ordinal."""

    index: int
    values: dict[str, str] = field(default_factory=dict)


@dataclass
class ParsedSpreadsheet:
    """Headers read eagerly plus a lazy iterator over data rows."""

    headers: list[str]
    rows: Iterator[RawRow]


def get_file_type(filename: str | None) -> str:
    """Return the supported file type for a filename.

    Raises:
        MalformedFileError: If the extension is missing or unsupported.
    """
    if not filename or "." not in filename:
        raise MalformedFileError("File has no extension; expected .xlsx or .csv")
    ext = filename.rsplit(".", 1)[-1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise MalformedFileError(f"Unsupported file type '.{ext}'; expected .xlsx or .csv")
    return ext


def _clean_headers(raw_headers: list[Any]) -> list[str]:
    headers = [cell_to_text(h) for h in raw_headers]
    # Trailing blank header cells are common in exported sheets
    while headers and not headers[-1]:
        headers.pop()
    if not headers:
        raise MalformedFileError("Header row is missing or blank")
    # A blank interior header (spacer column) gets a positional name; it
    # matches no field and is reported as ignored
    headers = [h or f"(column {get_column_letter(j + 1)})" for j, h in enumerate(headers)]

    seen: set[str] = set()
    for h in headers:
        if h in seen:
            raise MalformedFileError(f"Duplicate column header '{h}'")
        seen.add(h)
    return headers


def _iter_rows(
    headers: list[str],
    raw_rows: Iterator[Any],
    max_rows: int,
) -> Iterator[RawRow]:
    index = 0
    for raw in raw_rows:
        values = {
            header: cell_to_text(raw[j]) if j < len(raw) else ""
            for j, header in enumerate(headers)
        }
        if not any(values.values()):
            continue
        if index >= max_rows:
            raise MalformedFileError(f"File has more than {max_rows} data rows")
        yield RawRow(index=index, values=values)
        index += 1


def _detect_encoding(file_content: bytes) -> str:
    """Pick UTF-8 (BOM tolerated) if the whole file decodes, else Latin-1.

    Decodes in chunks so the decoded text is never held in memory at once.
    """
    decoder = codecs.getincrementaldecoder("utf-8-sig")()
    try:
        for start in range(0, len(file_content), DECODE_CHUNK_SIZE):
            decoder.decode(file_content[start:start + DECODE_CHUNK_SIZE])
        decoder.decode(b"", final=True)
    except UnicodeDecodeError:
        return "latin-1"
    return "utf-8-sig"


def parse_csv(file_content: bytes, max_rows: int) -> ParsedSpreadsheet:
    """Parse CSV content into headers and a lazy row iterator.

    Decodes through a streaming TextIOWrapper, UTF-8 first with a Latin-1
    fallback.

    Raises:
        MalformedFileError: If the CSV has no usable header row.
    """
    encoding = _detect_encoding(file_content)
    text_stream = io.TextIOWrapper(io.BytesIO(file_content), encoding=encoding, newline="")
    reader = csv.reader(text_stream)
    try:
        raw_headers = next(reader, None)
    except csv.Error as e:
        raise MalformedFileError(f"CSV file could not be read: {e}") from e
    if raw_headers is None:
        raise MalformedFileError("CSV file is empty")

    headers = _clean_headers(raw_headers)

    def _rows() -> Iterator[RawRow]:
        try:
            yield from _iter_rows(headers, reader, max_rows)
        except csv.Error as e:
            raise MalformedFileError(f"CSV file could not be read: {e}") from e

    return ParsedSpreadsheet(headers=headers, rows=_rows())


def parse_xlsx(file_content: bytes, max_rows: int) -> ParsedSpreadsheet:
    """Parse XLSX content (active sheet only) into headers and a lazy row iterator.

    Uses openpyxl read_only mode; the workbook is closed once the row
    iterator is exhausted or closed.

    Raises:
        MalformedFileError: If the file is not a workbook or has no header row.
    """
    if not file_content.startswith(XLSX_MAGIC):
        raise MalformedFileError("File is not a valid .xlsx workbook")
    try:
        wb = load_workbook(filename=io.BytesIO(file_content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, *XML_ERRORS) as e:
        raise MalformedFileError(f"File is not a valid .xlsx workbook: {e}") from e

    ws = wb.active
    if ws is None:
        wb.close()
        raise MalformedFileError("XLSX file has no worksheets")

    row_iter = ws.iter_rows(values_only=True)
    try:
        raw_headers = next(row_iter)
        headers = _clean_headers(list(raw_headers))
    except StopIteration:
        wb.close()
        raise MalformedFileError("XLSX file is empty")
    except MalformedFileError:
        wb.close()
        raise
    except XML_ERRORS as e:
        wb.close()
        raise MalformedFileError(f"Worksheet could not be read: {e}") from e

    def _rows() -> Iterator[RawRow]:
        try:
            yield from _iter_rows(headers, row_iter, max_rows)
        except (*XML_ERRORS, zipfile.BadZipFile) as e:
            raise MalformedFileError(f"Worksheet could not be read: {e}") from e
        finally:
            wb.close()

    return ParsedSpreadsheet(headers=headers, rows=_rows())


def open_spreadsheet(file_content: bytes, file_type: str, max_rows: int = 5000) -> ParsedSpreadsheet:
    """Open an uploaded spreadsheet of the given type ("xlsx" or "csv").

    Raises:
        MalformedFileError: If the file type is unsupported or the content unreadable.
    """
    if file_type == "xlsx":
        return parse_xlsx(file_content, max_rows)
    if file_type == "csv":
        if file_content.startswith(XLSX_MAGIC):
            raise MalformedFileError("File looks like a workbook, not a CSV")
        return parse_csv(file_content, max_rows)
    raise MalformedFileError(f"Unsupported file type '{file_type}'")
