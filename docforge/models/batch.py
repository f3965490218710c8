"""Batch session and candidate document models for spreadsheet-driven generation."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel


class SessionStatus(str, Enum):
    """Lifecycle of a batch session. Transitions only move forward."""

    PENDING = "pending"
    PROCESSING = "processing"
    REVIEWED = "reviewed"
    COMPLETED = "completed"


SESSION_STATUS_ORDER = [
    SessionStatus.PENDING,
    SessionStatus.PROCESSING,
    SessionStatus.REVIEWED,
    SessionStatus.COMPLETED,
]


class CandidateStatus(str, Enum):
    """Review status of one spreadsheet row."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CREATED = "created"


class BatchSession(Document):
    """One uploaded spreadsheet's review-and-creation lifecycle."""

    template_id: Indexed(PydanticObjectId)
    file_name: str
    file_type: str  # "xlsx" or "csv"
    status: SessionStatus = SessionStatus.PENDING

    # Counters, updated with atomic $inc
    total_rows: int = 0
    processed_rows: int = 0
    approved_rows: int = 0
    created_rows: int = 0

    # Header reconciliation against the template's declared fields
    ignored_columns: list[str] = Field(default_factory=list)
    missing_columns: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    # Last activity; expiry is measured from here
    updated_at: Indexed(datetime) = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "batch_sessions"

    def __repr__(self) -> str:
        return f"<BatchSession(id={self.id}, status={self.status.value}, rows={self.total_rows})>"


class CandidateField(BaseModel):
    """Embedded (field name, value) pair extracted from a row."""

    field_name: str
    field_value: str = ""


class StatusChange(BaseModel):
    """Embedded audit entry for a candidate status transition."""

    from_status: CandidateStatus
    to_status: CandidateStatus
    changed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BatchCandidate(Document):
    """A not-yet-materialized spreadsheet row awaiting approval."""

    session_id: Indexed(PydanticObjectId)
    row_index: int = Field(..., ge=0)
    name: str
    status: CandidateStatus = CandidateStatus.PENDING
    error_message: Optional[str] = None
    fields: list[CandidateField] = Field(default_factory=list)

    # Set once materialization succeeds
    document_id: Optional[PydanticObjectId] = None

    # Materialization claim; a claim older than the configured timeout is stale
    claim_id: Optional[str] = None
    claimed_at: Optional[datetime] = None

    status_history: list[StatusChange] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "batch_candidates"
        indexes = [
            IndexModel(
                [("session_id", ASCENDING), ("row_index", ASCENDING)],
                unique=True,
            ),
            [("session_id", ASCENDING), ("status", ASCENDING)],
        ]

    def field_values(self) -> dict[str, str]:
        """Return the candidate's fields as a name -> value mapping."""
        return {f.field_name: f.field_value for f in self.fields}

    def __repr__(self) -> str:
        return f"<BatchCandidate(session={self.session_id}, row={self.row_index}, status={self.status.value})>"
