"""Cell normalization and field value checks for spreadsheet rows."""

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from docforge.models.template import FieldType, TemplateField

from .constants import DATE_FORMATS

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def cell_to_text(value: Any) -> str:
    """Normalize a raw cell value to text.

    Integral floats lose their ``.0``; dates render as ISO dates and
    datetimes as ``YYYY-MM-DD HH:MM:SS`` unless they fall on midnight.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    return str(value).strip()


def _is_number(value: str) -> bool:
    cleaned = value.replace(",", "").strip()
    try:
        Decimal(cleaned)
    except InvalidOperation:
        return False
    return True


def _is_date(value: str) -> bool:
    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(value.strip(), fmt)
            return True
        except ValueError:
            continue
    return False


def check_field_value(field: TemplateField, value: str) -> str | None:
    """Check a non-empty value against its field type.

    Args:
        field: The declared field.
        value: Normalized cell text.

    Returns:
        A problem description, or None if the value is acceptable.
    """
    if not value:
        return None
    if field.field_type == FieldType.NUMBER and not _is_number(value):
        return f"Field '{field.name}' expects a number, got '{value}'"
    if field.field_type == FieldType.DATE and not _is_date(value):
        return f"Field '{field.name}' expects a date, got '{value}'"
    if field.field_type == FieldType.EMAIL and not EMAIL_PATTERN.match(value):
        return f"Field '{field.name}' expects an email address, got '{value}'"
    if field.field_type == FieldType.SELECT and value not in field.options:
        return f"Field '{field.name}' must be one of {', '.join(field.options)}, got '{value}'"
    return None
