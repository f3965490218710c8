"""Generated document model for MongoDB."""

from datetime import datetime, timezone
from typing import Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING


class DocumentField(BaseModel):
    """Embedded copy of a field value used to render the document."""

    field_name: str
    field_value: str = ""


class GeneratedDocument(Document):
    """A document materialized from a template and a set of field values.

    Fields are copied in so the document outlives the batch session that
    produced it.
    """

    template_id: Indexed(PydanticObjectId)
    name: str
    file_path: str
    archived: bool = False
    fields: list[DocumentField] = Field(default_factory=list)

    # Origin, when produced by a batch session
    session_id: Optional[PydanticObjectId] = None
    row_index: Optional[int] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "documents"
        indexes = [
            [("template_id", ASCENDING), ("archived", ASCENDING), ("created_at", DESCENDING)],
        ]

    def field_values(self) -> dict[str, str]:
        return {f.field_name: f.field_value for f in self.fields}

    def __repr__(self) -> str:
        return f"<GeneratedDocument(id={self.id}, name={self.name})>"
