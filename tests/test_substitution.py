"""Tests for placeholder substitution."""

import pytest

from docforge.services.errors import RenderError
from docforge.services.substitution import (
    EMPTY_MARKER,
    FILLED_MARKER,
    find_placeholders,
    render_document,
    render_preview,
)


class TestFindPlaceholders:
    def test_first_seen_order_without_duplicates(self):
        content = "{{b}} and {{a}} then {{b}} again"
        assert find_placeholders(content) == ["b", "a"]

    def test_no_placeholders(self):
        assert find_placeholders("Plain text") == []

    def test_ignores_single_braces(self):
        assert find_placeholders("{x} {{y}}") == ["y"]


class TestRenderPreview:
    def test_filled_value_is_marked(self):
        html = render_preview("Hello {{name}}!", {"name": "Ada"})
        assert html == "Hello " + FILLED_MARKER.format("Ada") + "!"

    def test_missing_value_keeps_token(self):
        html = render_preview("Hello {{name}}!", {})
        assert html == "Hello " + EMPTY_MARKER.format("{{name}}") + "!"

    def test_whitespace_value_counts_as_missing(self):
        html = render_preview("{{name}}", {"name": "   "})
        assert html == EMPTY_MARKER.format("{{name}}")

    def test_value_is_escaped_and_newlines_become_breaks(self):
        html = render_preview("{{note}}", {"note": "<b>x</b>\r\nline 2"})
        assert html == FILLED_MARKER.format("&lt;b&gt;x&lt;/b&gt;<br>line 2")

    def test_unknown_token_left_untouched(self):
        html = render_preview("{{name}} {{other}}", {"name": "Ada"}, known_fields=["name"])
        assert html.endswith(" {{other}}")
        assert FILLED_MARKER.format("Ada") in html

    def test_escape_content_for_plain_text(self):
        html = render_preview("a < b\n{{x}}", {"x": "1"}, escape_content=True)
        assert html == "a &lt; b<br>" + FILLED_MARKER.format("1")

    def test_every_occurrence_replaced(self):
        html = render_preview("{{x}}-{{x}}", {"x": "1"})
        assert html.count(FILLED_MARKER.format("1")) == 2

    def test_unbalanced_braces_raise(self):
        with pytest.raises(RenderError):
            render_preview("Hello {{name", {"name": "Ada"})


class TestRenderDocument:
    def test_raw_values_without_markers(self):
        out = render_document("Dear {{name}},", {"name": "Ada & Co"})
        assert out == "Dear Ada & Co,"

    def test_html_documents_escape_values(self):
        out = render_document("<p>{{name}}</p>", {"name": "<Ada>"}, content_type="html")
        assert out == "<p>&lt;Ada&gt;</p>"

    def test_line_endings_normalised(self):
        out = render_document("{{x}}", {"x": "a\r\nb\rc"})
        assert out == "a\nb\nc"

    def test_known_field_without_value_renders_empty(self):
        out = render_document("[{{x}}]", {}, known_fields=["x"])
        assert out == "[]"

    def test_unknown_token_stays_literal(self):
        out = render_document("[{{x}}] [{{y}}]", {"x": "1"}, known_fields=["x"])
        assert out == "[1] [{{y}}]"

    def test_value_containing_token_is_not_expanded(self):
        out = render_document("{{a}} {{b}}", {"a": "{{b}}", "b": "B"})
        assert out == "{{b}} B"

    def test_malformed_content_raises(self):
        with pytest.raises(RenderError) as exc_info:
            render_document("Total: }} {{amount}}", {"amount": "1"})
        assert exc_info.value.kind == "render_error"
