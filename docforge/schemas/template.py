"""Pydantic schemas for templates."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from docforge.models.template import ContentType, Template, TemplateCategory, TemplateField


class TemplateCreate(BaseModel):
    """Schema for creating a template with explicit content and fields."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    category: TemplateCategory = TemplateCategory.GENERAL
    content: str = Field(..., min_length=1)
    content_type: ContentType = ContentType.TEXT
    fields: list[TemplateField] = Field(default_factory=list)


class TemplateResponse(BaseModel):
    """Schema for template response."""

    id: str
    name: str
    description: str | None
    category: TemplateCategory
    content: str
    content_type: ContentType
    fields: list[TemplateField]
    field_count: int
    placeholders: list[str] = Field(default_factory=list, description="Tokens found in the content")
    archived: bool
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def from_template(template: Template, placeholders: list[str] | None = None) -> "TemplateResponse":
        return TemplateResponse(
            id=str(template.id),
            name=template.name,
            description=template.description,
            category=template.category,
            content=template.content,
            content_type=template.content_type,
            fields=template.fields,
            field_count=template.field_count,
            placeholders=placeholders or [],
            archived=template.archived,
            created_at=template.created_at,
            updated_at=template.updated_at,
        )


class PreviewRequest(BaseModel):
    """Field values to substitute into a template preview."""

    values: dict[str, str] = Field(default_factory=dict)


class PreviewResponse(BaseModel):
    """Rendered preview markup plus the values and template it came from."""

    html: str
    fields: dict[str, str]
    template: dict[str, Any]


class TemplateUsageResponse(BaseModel):
    """What deleting a template would remove."""

    template_id: str
    sessions: int
    candidates: int
    documents: int
    archived_documents: int
    in_use: bool
