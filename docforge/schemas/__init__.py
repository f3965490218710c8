"""Pydantic schemas for the DocForge API."""

from docforge.schemas.batch import (
    BulkStatusRequest,
    BulkStatusResponse,
    CandidateResponse,
    MaterializeResponse,
    SessionDetail,
    SessionSummary,
    StatusUpdateRequest,
    UploadResponse,
)
from docforge.schemas.document import DocumentResponse, DocumentZipRequest
from docforge.schemas.export import ExportFormat, ExportMetadata
from docforge.schemas.template import (
    PreviewRequest,
    PreviewResponse,
    TemplateCreate,
    TemplateResponse,
    TemplateUsageResponse,
)

__all__ = [
    "BulkStatusRequest",
    "BulkStatusResponse",
    "CandidateResponse",
    "MaterializeResponse",
    "SessionDetail",
    "SessionSummary",
    "StatusUpdateRequest",
    "UploadResponse",
    "DocumentResponse",
    "DocumentZipRequest",
    "ExportFormat",
    "ExportMetadata",
    "PreviewRequest",
    "PreviewResponse",
    "TemplateCreate",
    "TemplateResponse",
    "TemplateUsageResponse",
]
