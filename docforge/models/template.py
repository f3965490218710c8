"""Template document model with embedded field declarations."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, model_validator


class TemplateCategory(str, Enum):
    """Category of a document template."""

    CONTRACT = "contract"
    PROPOSAL = "proposal"
    REPORT = "report"
    LETTER = "letter"
    FORM = "form"
    GENERAL = "general"
    LEGAL = "legal"
    FINANCIAL = "financial"
    HR = "hr"
    MARKETING = "marketing"
    OTHER = "other"


class FieldType(str, Enum):
    """Input type of a declared template field."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    EMAIL = "email"


class ContentType(str, Enum):
    """Format of the template content, which is also the rendered document format."""

    TEXT = "text"
    HTML = "html"


class TemplateField(BaseModel):
    """Embedded subdocument declaring one placeholder field."""

    name: str = Field(..., min_length=1, max_length=200)
    label: Optional[str] = None
    field_type: FieldType = FieldType.TEXT
    required: bool = False
    options: list[str] = Field(default_factory=list)

    @property
    def display_label(self) -> str:
        return self.label or self.name

    @model_validator(mode="after")
    def _check_options(self) -> "TemplateField":
        if self.field_type == FieldType.SELECT and not self.options:
            raise ValueError(f"Select field '{self.name}' needs at least one option")
        if self.field_type != FieldType.SELECT and self.options:
            raise ValueError(f"Only select fields may declare options ('{self.name}')")
        if "{" in self.name or "}" in self.name:
            raise ValueError(f"Field name '{self.name}' may not contain braces")
        return self


class Template(Document):
    """A reusable document template and its declared field schema."""

    name: Indexed(str)
    description: Optional[str] = None
    category: TemplateCategory = TemplateCategory.GENERAL
    content: str
    content_type: ContentType = ContentType.TEXT

    # Ordered field declarations; order drives mapping and export columns
    fields: list[TemplateField] = Field(default_factory=list)
    archived: bool = False

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "templates"
        indexes = [
            "archived",
        ]

    @model_validator(mode="after")
    def _check_unique_field_names(self) -> "Template":
        seen: set[str] = set()
        for field in self.fields:
            if field.name in seen:
                raise ValueError(f"Duplicate field name '{field.name}'")
            seen.add(field.name)
        return self

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def __repr__(self) -> str:
        return f"<Template(id={self.id}, name={self.name}, fields={self.field_count})>"
