"""Workbook writing: styled sheets and per-template input workbooks."""

import io
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from docforge.models.template import FieldType, Template

from .constants import DOCUMENT_NAME_HEADER

HEADER_COLOR = "8B1A4A"
MAX_COLUMN_WIDTH = 50

_SAMPLE_VALUES = {
    FieldType.TEXT: "Sample text",
    FieldType.TEXTAREA: "First line\nSecond line",
    FieldType.NUMBER: "100",
    FieldType.DATE: "2024-01-31",
    FieldType.EMAIL: "someone@example.com",
}


def write_styled_sheet(ws: Worksheet, headers: list[str], rows: list[list[Any]]) -> None:
    """Write a header row plus data rows with the standard export styling.

    The header is bold white on the accent colour, frozen, and column widths
    follow the longest value (capped).
    """
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
    header_alignment = Alignment(horizontal="center")

    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment

    widths = [len(h) for h in headers]
    for row_idx, row in enumerate(rows, 2):
        for col_idx, value in enumerate(row, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            if isinstance(value, str) and cell.data_type == "f":
                # User text is never a formula
                cell.data_type = "s"
            if value not in (None, "") and col_idx <= len(widths):
                longest_line = max(len(line) for line in str(value).splitlines() or [""])
                widths[col_idx - 1] = max(widths[col_idx - 1], longest_line)

    for col_idx, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = min(width + 2, MAX_COLUMN_WIDTH)

    ws.freeze_panes = "A2"


def _sample_value(template: Template, field_index: int, sample: int) -> str:
    f = template.fields[field_index]
    if f.field_type == FieldType.SELECT:
        return f.options[sample % len(f.options)]
    return _SAMPLE_VALUES.get(f.field_type, "Sample")


def build_input_workbook(template: Template, sample_rows: int = 2) -> bytes:
    """Build an xlsx users can fill in and upload for this template.

    The first sheet has a ``DOCUMENT_NAME`` column followed by every declared
    field name, plus a few sample rows. A second "Fields" sheet describes each
    field's type, whether it is required, and its allowed options.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Data"

    headers = [DOCUMENT_NAME_HEADER] + [f.name for f in template.fields]
    rows = []
    for sample in range(sample_rows):
        row = [f"{template.name} {sample + 1}"]
        row.extend(_sample_value(template, i, sample) for i in range(len(template.fields)))
        rows.append(row)
    write_styled_sheet(ws, headers, rows)

    info = wb.create_sheet("Fields")
    info_rows = [
        [f.name, f.display_label, f.field_type.value, "yes" if f.required else "no", ", ".join(f.options)]
        for f in template.fields
    ]
    write_styled_sheet(info, ["field", "label", "type", "required", "options"], info_rows)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
