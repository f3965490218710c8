"""MongoDB document models for DocForge."""

from docforge.models.batch import (
    BatchCandidate,
    BatchSession,
    CandidateField,
    CandidateStatus,
    SessionStatus,
    StatusChange,
)
from docforge.models.document import DocumentField, GeneratedDocument
from docforge.models.template import ContentType, FieldType, Template, TemplateCategory, TemplateField

__all__ = [
    # Main documents
    "Template",
    "BatchSession",
    "BatchCandidate",
    "GeneratedDocument",
    # Embedded subdocuments
    "TemplateField",
    "CandidateField",
    "StatusChange",
    "DocumentField",
    # Enums
    "TemplateCategory",
    "FieldType",
    "ContentType",
    "SessionStatus",
    "CandidateStatus",
]
