"""Pydantic schemas for document export."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ExportFormat(str, Enum):
    """Supported export formats."""

    CSV = "csv"
    XLSX = "xlsx"
    YAML = "yaml"
    JSON = "json"


class ExportMetadata(BaseModel):
    """Metadata included in hierarchical exports (JSON, YAML)."""

    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    template_id: str
    template_name: str
    start_date: str
    end_date: str
    total_count: int
    format: str
    columns: list[str] = Field(default_factory=list)


class DocumentsExportResponse(BaseModel):
    """Shape of a JSON/YAML document export."""

    documents: list[dict[str, Any]]
    export_info: ExportMetadata
