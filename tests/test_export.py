"""Tests for generated document export."""

import csv
import io
import json
from datetime import date, timedelta

import pytest
import yaml
from httpx import AsyncClient
from openpyxl import load_workbook

from docforge.models.batch import CandidateStatus
from docforge.models.document import DocumentField, GeneratedDocument
from docforge.schemas.export import ExportFormat
from docforge.services.batch_session import bulk_set_candidate_status, utcnow
from docforge.services.export_service import (
    BASE_HEADERS,
    export_documents,
    export_records_to_xlsx,
    generate_filename,
)
from docforge.services.materializer import materialize_session

EXPECTED_HEADERS = BASE_HEADERS + ["clientName", "amount", "dueDate"]


def _csv_rows(content: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content.decode("utf-8"))))


async def _materialize_letters(letter_session, storage) -> None:
    await bulk_set_candidate_status(letter_session.id, [0, 2], CandidateStatus.APPROVED)
    await materialize_session(letter_session.id, storage=storage)


def test_generate_filename() -> None:
    name = generate_filename("Payment Reminder", date(2024, 1, 1), date(2024, 1, 31), ExportFormat.XLSX)
    assert name == "Payment_Reminder_documents_2024-01-01_to_2024-01-31.xlsx"


def test_xlsx_keeps_formula_like_values_as_text() -> None:
    content = export_records_to_xlsx(
        ["document_name", "note"],
        [{"document_name": "Reminder", "note": "=1+1"}, {"document_name": "=HYPERLINK(\"x\")", "note": "plain"}],
    )

    ws = load_workbook(io.BytesIO(content))["Documents"]
    assert ws["B2"].value == "=1+1"
    assert ws["B2"].data_type == "s"
    assert ws["A3"].value == '=HYPERLINK("x")'
    assert ws["A3"].data_type == "s"
    assert ws["B3"].value == "plain"


@pytest.mark.asyncio
async def test_empty_range_csv_has_header_only(letter_template) -> None:
    export = await export_documents(letter_template.id, date(2020, 1, 1), date(2020, 1, 31), ExportFormat.CSV)
    assert export.row_count == 0
    assert export.media_type == "text/csv"
    assert _csv_rows(export.content) == [EXPECTED_HEADERS]


@pytest.mark.asyncio
async def test_empty_range_xlsx_has_header_only(letter_template) -> None:
    export = await export_documents(letter_template.id, date(2020, 1, 1), date(2020, 1, 31))
    assert export.filename.endswith(".xlsx")

    wb = load_workbook(io.BytesIO(export.content))
    ws = wb["Documents"]
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == EXPECTED_HEADERS
    assert len(rows) == 1
    assert ws.freeze_panes == "A2"


@pytest.mark.asyncio
async def test_export_csv_with_documents(letter_session, letter_template, storage) -> None:
    await _materialize_letters(letter_session, storage)
    today = utcnow().date()

    export = await export_documents(letter_template.id, today, today, ExportFormat.CSV)
    assert export.row_count == 2

    rows = _csv_rows(export.content)
    assert rows[0] == EXPECTED_HEADERS
    by_name = {row[0]: row for row in rows[1:]}
    assert set(by_name) == {"Reminder Acme", "Reminder Globex"}
    assert by_name["Reminder Acme"][2:] == ["Acme Ltd", "1200", "2024-03-01"]
    assert by_name["Reminder Globex"][1].startswith(today.isoformat())


@pytest.mark.asyncio
async def test_export_excludes_archived_and_out_of_range(letter_session, letter_template, storage) -> None:
    await _materialize_letters(letter_session, storage)
    await GeneratedDocument.find_one(GeneratedDocument.name == "Reminder Acme").update(
        {"$set": {"archived": True}}
    )
    today = utcnow().date()

    export = await export_documents(letter_template.id, today, today, ExportFormat.CSV)
    assert [row[0] for row in _csv_rows(export.content)[1:]] == ["Reminder Globex"]

    yesterday = today - timedelta(days=1)
    export = await export_documents(letter_template.id, yesterday, yesterday, ExportFormat.CSV)
    assert export.row_count == 0


@pytest.mark.asyncio
async def test_extra_field_columns_follow_declared_ones(letter_template) -> None:
    await GeneratedDocument(
        template_id=letter_template.id,
        name="Legacy",
        file_path="legacy.txt",
        fields=[
            DocumentField(field_name="clientName", field_value="Old Co"),
            DocumentField(field_name="zone", field_value="EU"),
            DocumentField(field_name="branch", field_value="North"),
        ],
    ).insert()
    today = utcnow().date()

    export = await export_documents(letter_template.id, today, today, ExportFormat.CSV)
    rows = _csv_rows(export.content)
    assert rows[0] == EXPECTED_HEADERS + ["branch", "zone"]
    assert rows[1] == ["Legacy", rows[1][1], "Old Co", "", "", "North", "EU"]


@pytest.mark.asyncio
async def test_export_json_and_yaml_metadata(letter_session, letter_template, storage) -> None:
    await _materialize_letters(letter_session, storage)
    today = utcnow().date()

    export = await export_documents(letter_template.id, today, today, ExportFormat.JSON)
    data = json.loads(export.content)
    assert data["export_info"]["total_count"] == 2
    assert data["export_info"]["format"] == "json"
    assert data["export_info"]["columns"] == EXPECTED_HEADERS
    assert {d["document_name"] for d in data["documents"]} == {"Reminder Acme", "Reminder Globex"}

    export = await export_documents(letter_template.id, today, today, ExportFormat.YAML)
    data = yaml.safe_load(export.content.decode("utf-8"))
    assert data["export_info"]["template_name"] == "Payment Reminder"
    assert len(data["documents"]) == 2


@pytest.mark.asyncio
async def test_start_after_end_is_rejected(letter_template) -> None:
    with pytest.raises(ValueError):
        await export_documents(letter_template.id, date(2024, 2, 1), date(2024, 1, 1))


@pytest.mark.asyncio
async def test_export_endpoint(client: AsyncClient, letter_session, letter_template, storage) -> None:
    await _materialize_letters(letter_session, storage)
    today = utcnow().date().isoformat()

    response = await client.get(
        "/api/export/documents",
        params={
            "template_id": str(letter_template.id),
            "start_date": today,
            "end_date": today,
            "format": "csv",
        },
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=Payment_Reminder_documents_" in response.headers["content-disposition"]
    assert response.headers["x-row-count"] == "2"
    assert len(_csv_rows(response.content)) == 3


@pytest.mark.asyncio
async def test_export_endpoint_rejects_inverted_range(client: AsyncClient, letter_template) -> None:
    response = await client.get(
        "/api/export/documents",
        params={
            "template_id": str(letter_template.id),
            "start_date": "2024-02-01",
            "end_date": "2024-01-01",
        },
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_export_endpoint_unknown_template(client: AsyncClient) -> None:
    response = await client.get(
        "/api/export/documents",
        params={
            "template_id": "0123456789abcdef01234567",
            "start_date": "2024-01-01",
            "end_date": "2024-01-31",
        },
    )
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"
