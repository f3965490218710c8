"""Export service for generated documents in various formats."""

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any

import yaml
from beanie import PydanticObjectId
from openpyxl import Workbook
from pymongo.errors import PyMongoError

from docforge.models.document import GeneratedDocument
from docforge.models.template import Template
from docforge.schemas.export import ExportFormat, ExportMetadata
from docforge.services.document_storage import safe_filename
from docforge.services.errors import ExportFailedError
from docforge.services.field_schema import declared_field_names, get_template
from docforge.services.spreadsheet import write_styled_sheet

logger = logging.getLogger(__name__)

# Leading export columns; field columns follow
BASE_HEADERS = ["document_name", "created_date"]


@dataclass
class ExportFile:
    filename: str
    content: bytes
    media_type: str
    row_count: int


def _format_datetime(dt: datetime | None) -> str:
    """Format datetime for export."""
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def day_range(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    """Inclusive UTC bounds covering whole days from start_date to end_date."""
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)
    return start, end


def build_headers(template: Template, documents: list[GeneratedDocument]) -> list[str]:
    """Base columns, declared fields in order, then any extra field names sorted."""
    declared = declared_field_names(template.fields)
    seen = set(BASE_HEADERS) | set(declared)
    extra = sorted({
        f.field_name
        for doc in documents
        for f in doc.fields
        if f.field_name not in seen
    })
    return BASE_HEADERS + declared + extra


def _document_to_record(doc: GeneratedDocument, headers: list[str]) -> dict[str, str]:
    values = doc.field_values()
    record = {
        "document_name": doc.name,
        "created_date": _format_datetime(doc.created_at),
    }
    for header in headers[len(BASE_HEADERS):]:
        record[header] = values.get(header, "")
    return record


def export_records_to_csv(headers: list[str], records: list[dict[str, str]]) -> bytes:
    """Export records to CSV format.

    Args:
        headers: Column order
        records: Rows keyed by column

    Returns:
        CSV content as bytes
    """
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for record in records:
        writer.writerow([record.get(h, "") for h in headers])
    return output.getvalue().encode("utf-8")


def export_records_to_xlsx(headers: list[str], records: list[dict[str, str]]) -> bytes:
    """Export records to Excel (XLSX) format with a styled, frozen header row."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Documents"
    write_styled_sheet(ws, headers, [[record.get(h, "") for h in headers] for record in records])

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def export_records_to_yaml(records: list[dict[str, str]], metadata: ExportMetadata) -> bytes:
    """Export records to YAML format with metadata."""
    export_data = {
        "documents": records,
        "export_info": metadata.model_dump(mode="json"),
    }
    return yaml.dump(export_data, default_flow_style=False, allow_unicode=True, sort_keys=False).encode("utf-8")


def export_records_to_json(records: list[dict[str, str]], metadata: ExportMetadata) -> bytes:
    """Export records to JSON format with metadata."""
    export_data: dict[str, Any] = {
        "documents": records,
        "export_info": metadata.model_dump(mode="json"),
    }
    return json.dumps(export_data, ensure_ascii=False, indent=2).encode("utf-8")


def get_content_type(export_format: ExportFormat) -> str:
    """Get the MIME type for an export format."""
    content_types = {
        ExportFormat.CSV: "text/csv",
        ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        ExportFormat.YAML: "application/x-yaml",
        ExportFormat.JSON: "application/json",
    }
    return content_types[export_format]


def generate_filename(template_name: str, start_date: date, end_date: date, export_format: ExportFormat) -> str:
    """Build ``{template}_documents_{start}_to_{end}.{ext}``."""
    return (
        f"{safe_filename(template_name)}_documents_"
        f"{start_date.isoformat()}_to_{end_date.isoformat()}.{export_format.value}"
    )


async def fetch_documents(
    template_id: PydanticObjectId,
    start_date: date,
    end_date: date,
) -> list[GeneratedDocument]:
    """Non-archived documents of a template created within the day range, newest first."""
    start, end = day_range(start_date, end_date)
    return await GeneratedDocument.find(
        GeneratedDocument.template_id == template_id,
        GeneratedDocument.archived == False,  # noqa: E712
        GeneratedDocument.created_at >= start,
        GeneratedDocument.created_at <= end,
    ).sort("-created_at").to_list()


async def export_documents(
    template_id: str | PydanticObjectId,
    start_date: date,
    end_date: date,
    export_format: ExportFormat = ExportFormat.XLSX,
) -> ExportFile:
    """Export a template's generated documents over an inclusive date range.

    An empty range still yields a well-formed file holding only the header
    (or an empty ``documents`` list for JSON/YAML).

    Args:
        template_id: Template whose documents are exported.
        start_date: First day included (UTC).
        end_date: Last day included (UTC).
        export_format: Output format.

    Returns:
        ExportFile with the rendered bytes.

    Raises:
        NotFoundError: If the template does not exist.
        ExportFailedError: If documents cannot be read or the file cannot be built.
    """
    if start_date > end_date:
        raise ValueError("start_date must not be after end_date")

    template = await get_template(template_id)
    try:
        documents = await fetch_documents(template.id, start_date, end_date)
    except PyMongoError as e:
        logger.error("Export query failed for template %s: %s", template.id, e)
        raise ExportFailedError(f"Could not read documents for export: {e}") from e

    headers = build_headers(template, documents)
    records = [_document_to_record(doc, headers) for doc in documents]

    try:
        if export_format == ExportFormat.CSV:
            content = export_records_to_csv(headers, records)
        elif export_format == ExportFormat.XLSX:
            content = export_records_to_xlsx(headers, records)
        else:
            metadata = ExportMetadata(
                template_id=str(template.id),
                template_name=template.name,
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat(),
                total_count=len(records),
                format=export_format.value,
                columns=headers,
            )
            if export_format == ExportFormat.YAML:
                content = export_records_to_yaml(records, metadata)
            else:
                content = export_records_to_json(records, metadata)
    except (ValueError, OSError, yaml.YAMLError) as e:
        logger.error("Building %s export for template %s failed: %s", export_format.value, template.id, e)
        raise ExportFailedError(f"Could not build {export_format.value} export: {e}") from e

    logger.info(
        "Exported %d documents of template %s (%s to %s) as %s",
        len(records), template.id, start_date, end_date, export_format.value,
    )
    return ExportFile(
        filename=generate_filename(template.name, start_date, end_date, export_format),
        content=content,
        media_type=get_content_type(export_format),
        row_count=len(records),
    )
