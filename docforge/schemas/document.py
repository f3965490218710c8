"""Pydantic schemas for generated documents."""

from datetime import datetime

from pydantic import BaseModel, Field

from docforge.models.document import GeneratedDocument


class DocumentFieldResponse(BaseModel):
    field_name: str
    field_value: str


class DocumentResponse(BaseModel):
    """Schema for generated document response."""

    id: str
    template_id: str
    name: str
    archived: bool
    fields: list[DocumentFieldResponse]
    session_id: str | None
    row_index: int | None
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def from_document(document: GeneratedDocument) -> "DocumentResponse":
        return DocumentResponse(
            id=str(document.id),
            template_id=str(document.template_id),
            name=document.name,
            archived=document.archived,
            fields=[
                DocumentFieldResponse(field_name=f.field_name, field_value=f.field_value)
                for f in document.fields
            ],
            session_id=str(document.session_id) if document.session_id else None,
            row_index=document.row_index,
            created_at=document.created_at,
            updated_at=document.updated_at,
        )


class DocumentZipRequest(BaseModel):
    """Documents to bundle into one ZIP download."""

    document_ids: list[str] = Field(..., min_length=1, max_length=500)
