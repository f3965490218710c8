"""Placeholder substitution for previews and final documents.

Template content contains tokens of the exact form ``{{fieldName}}``. These
functions are pure: they know nothing about storage or sessions.
"""

import html
import re
from collections.abc import Collection, Mapping

from docforge.services.errors import RenderError

TOKEN_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
NEWLINE_PATTERN = re.compile(r"\r\n|\r|\n")

FILLED_MARKER = '<span class="preview-field filled">{}</span>'
EMPTY_MARKER = '<span class="preview-field empty">{}</span>'
LINE_BREAK = "<br>"


def check_well_formed(content: str) -> None:
    """Raise RenderError if braces remain outside well-formed tokens."""
    remainder = TOKEN_PATTERN.sub("", content)
    for marker in ("{{", "}}"):
        pos = remainder.find(marker)
        if pos != -1:
            snippet = remainder[max(0, pos - 20):pos + 22]
            raise RenderError(f"Malformed placeholder near '{snippet}'")


def _is_field(name: str, values: Mapping[str, str], known_fields: Collection[str] | None) -> bool:
    if known_fields is None:
        return True
    return name in known_fields or name in values


def _html_lines(text: str) -> str:
    return NEWLINE_PATTERN.sub(LINE_BREAK, html.escape(text, quote=False))


def find_placeholders(content: str) -> list[str]:
    """List placeholder names in first-seen order, without duplicates."""
    names: list[str] = []
    for match in TOKEN_PATTERN.finditer(content):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


def render_preview(
    content: str,
    values: Mapping[str, str],
    known_fields: Collection[str] | None = None,
    escape_content: bool = False,
) -> str:
    """Render content for an HTML preview.

    Filled tokens are wrapped in ``FILLED_MARKER`` with the value escaped and
    its line breaks turned into ``<br>``. Tokens of a field without a value
    keep the literal token inside ``EMPTY_MARKER``. When ``known_fields`` is
    given, tokens naming no known field are left untouched.

    Args:
        content: Template content.
        values: Field name -> value.
        known_fields: Declared field names, or None to treat every token as a field.
        escape_content: Escape literal template text (plain-text templates).

    Returns:
        Preview markup.

    Raises:
        RenderError: If the content has unbalanced placeholder braces.
    """
    check_well_formed(content)

    parts: list[str] = []
    last = 0
    for match in TOKEN_PATTERN.finditer(content):
        literal = content[last:match.start()]
        parts.append(_html_lines(literal) if escape_content else literal)
        last = match.end()

        name = match.group(1)
        token = match.group(0)
        if not _is_field(name, values, known_fields):
            parts.append(html.escape(token, quote=False) if escape_content else token)
            continue

        value = values.get(name) or ""
        if value.strip():
            parts.append(FILLED_MARKER.format(_html_lines(value)))
        else:
            parts.append(EMPTY_MARKER.format(html.escape(token, quote=False)))

    tail = content[last:]
    parts.append(_html_lines(tail) if escape_content else tail)
    return "".join(parts)


def render_document(
    content: str,
    values: Mapping[str, str],
    known_fields: Collection[str] | None = None,
    content_type: str = "text",
) -> str:
    """Render final document content with raw values and no markers.

    Line endings inside values are normalised to ``\\n``. Values are
    HTML-escaped only when the document itself is HTML. Known fields without
    a value render as an empty string; unknown tokens stay literal.

    Raises:
        RenderError: If the content has unbalanced placeholder braces.
    """
    check_well_formed(content)
    escape = content_type == "html"

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            value = NEWLINE_PATTERN.sub("\n", values[name] or "")
            return html.escape(value, quote=False) if escape else value
        if known_fields is not None and name in known_fields:
            return ""
        return match.group(0)

    return TOKEN_PATTERN.sub(_replace, content)
