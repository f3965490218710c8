"""Header reconciliation and row-to-field mapping for batch uploads.

Columns map to declared template fields by exact, case-sensitive name.
Nothing is guessed: a column that names no declared field is ignored.
"""

import logging
from dataclasses import dataclass, field

from docforge.models.template import TemplateField

from .constants import DOCUMENT_NAME_HEADERS, PROBLEM_SEPARATOR
from .converters import check_field_value
from .parsers import RawRow

logger = logging.getLogger(__name__)


@dataclass
class HeaderAnalysis:
    """How a spreadsheet's headers line up with a template's fields."""

    matched: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
    missing_required: list[str] = field(default_factory=list)
    missing_optional: list[str] = field(default_factory=list)
    name_column: str | None = None

    @property
    def missing(self) -> list[str]:
        return self.missing_required + self.missing_optional

    def warnings(self) -> list[str]:
        """Human-readable session warnings for the header mismatch."""
        messages: list[str] = []
        if self.ignored:
            messages.append(f"Ignored columns with no matching field: {', '.join(self.ignored)}")
        if self.missing_required:
            messages.append(f"Missing required field columns: {', '.join(self.missing_required)}")
        if self.missing_optional:
            messages.append(f"Missing optional field columns: {', '.join(self.missing_optional)}")
        return messages


@dataclass
class CandidateDraft:
    """A mapped row, ready to be stored as a batch candidate."""

    row_index: int
    name: str
    fields: list[tuple[str, str]] = field(default_factory=list)
    error_message: str | None = None


def analyze_headers(headers: list[str], fields: list[TemplateField]) -> HeaderAnalysis:
    """Match spreadsheet headers against declared fields.

    Args:
        headers: Column headers in file order.
        fields: The template's declared fields.

    Returns:
        HeaderAnalysis with matched field names in declared order.
    """
    declared = {f.name for f in fields}
    header_set = set(headers)
    analysis = HeaderAnalysis()

    for f in fields:
        if f.name in header_set:
            analysis.matched.append(f.name)
        elif f.required:
            analysis.missing_required.append(f.name)
        else:
            analysis.missing_optional.append(f.name)

    for candidate in DOCUMENT_NAME_HEADERS:
        if candidate in header_set and candidate not in declared:
            analysis.name_column = candidate
            break

    analysis.ignored = [
        h for h in headers
        if h not in declared and h != analysis.name_column
    ]
    return analysis


def map_row(row: RawRow, fields: list[TemplateField], analysis: HeaderAnalysis) -> CandidateDraft:
    """Map one parsed row onto the template's declared fields.

    Validation problems never drop the row; they are joined into
    ``error_message`` for the reviewer.
    """
    matched = set(analysis.matched)
    problems: list[str] = []
    mapped: list[tuple[str, str]] = []

    for f in fields:
        if f.name not in matched:
            if f.required:
                problems.append(f"Required field '{f.name}' has no column")
            continue
        value = row.values.get(f.name, "")
        mapped.append((f.name, value))
        if not value:
            if f.required:
                problems.append(f"Required field '{f.name}' is empty")
            continue
        problem = check_field_value(f, value)
        if problem:
            problems.append(problem)

    name = ""
    if analysis.name_column:
        name = row.values.get(analysis.name_column, "")
    if not name:
        name = f"Document {row.index + 1}"

    if problems:
        logger.debug("Row %d has %d validation problem(s)", row.index, len(problems))

    return CandidateDraft(
        row_index=row.index,
        name=name,
        fields=mapped,
        error_message=PROBLEM_SEPARATOR.join(problems) if problems else None,
    )
