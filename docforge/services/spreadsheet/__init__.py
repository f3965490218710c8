"""Spreadsheet ingestion: parsing uploads and mapping rows onto template fields."""

from .constants import (
    ALLOWED_EXTENSIONS,
    DOCUMENT_NAME_HEADER,
    DOCUMENT_NAME_HEADERS,
)
from .converters import cell_to_text, check_field_value
from .mapping import CandidateDraft, HeaderAnalysis, analyze_headers, map_row
from .parsers import (
    ParsedSpreadsheet,
    RawRow,
    get_file_type,
    open_spreadsheet,
    parse_csv,
    parse_xlsx,
)
from .workbook import build_input_workbook, write_styled_sheet

__all__ = [
    # Constants
    "ALLOWED_EXTENSIONS",
    "DOCUMENT_NAME_HEADER",
    "DOCUMENT_NAME_HEADERS",
    # Parsers
    "ParsedSpreadsheet",
    "RawRow",
    "get_file_type",
    "open_spreadsheet",
    "parse_csv",
    "parse_xlsx",
    # Mapping
    "CandidateDraft",
    "HeaderAnalysis",
    "analyze_headers",
    "map_row",
    # Converters
    "cell_to_text",
    "check_field_value",
    # Workbooks
    "build_input_workbook",
    "write_styled_sheet",
]
