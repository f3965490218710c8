"""Pydantic schemas for batch upload, review and materialization."""

from datetime import datetime

from pydantic import BaseModel, Field

from docforge.models.batch import (
    BatchCandidate,
    BatchSession,
    CandidateStatus,
    SessionStatus,
    StatusChange,
)


class CandidateFieldResponse(BaseModel):
    field_name: str
    field_value: str


class CandidateResponse(BaseModel):
    """One spreadsheet row awaiting review."""

    row_index: int
    name: str
    status: CandidateStatus
    error_message: str | None
    fields: list[CandidateFieldResponse]
    document_id: str | None
    status_history: list[StatusChange] = Field(default_factory=list)

    @staticmethod
    def from_candidate(candidate: BatchCandidate) -> "CandidateResponse":
        return CandidateResponse(
            row_index=candidate.row_index,
            name=candidate.name,
            status=candidate.status,
            error_message=candidate.error_message,
            fields=[
                CandidateFieldResponse(field_name=f.field_name, field_value=f.field_value)
                for f in candidate.fields
            ],
            document_id=str(candidate.document_id) if candidate.document_id else None,
            status_history=candidate.status_history,
        )


class SessionSummary(BaseModel):
    """Batch session counters for listing."""

    id: str
    template_id: str
    file_name: str
    file_type: str
    status: SessionStatus
    total_rows: int
    processed_rows: int
    approved_rows: int
    created_rows: int
    ignored_columns: list[str]
    missing_columns: list[str]
    warnings: list[str]
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def from_session(session: BatchSession) -> "SessionSummary":
        return SessionSummary(
            id=str(session.id),
            template_id=str(session.template_id),
            file_name=session.file_name,
            file_type=session.file_type,
            status=session.status,
            total_rows=session.total_rows,
            processed_rows=session.processed_rows,
            approved_rows=session.approved_rows,
            created_rows=session.created_rows,
            ignored_columns=session.ignored_columns,
            missing_columns=session.missing_columns,
            warnings=session.warnings,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class SessionDetail(SessionSummary):
    """A session with its candidates in row order."""

    candidates: list[CandidateResponse] = Field(default_factory=list)


class UploadResponse(BaseModel):
    """Response after uploading a spreadsheet."""

    session_id: str
    file_name: str
    total_rows: int
    rows_with_errors: int
    ignored_columns: list[str]
    missing_columns: list[str]
    warnings: list[str]
    # "schema_mismatch" when columns or rows disagree with the template
    warning_kind: str | None = None


class StatusUpdateRequest(BaseModel):
    status: CandidateStatus


class BulkStatusRequest(BaseModel):
    """Apply one status to several rows."""

    row_indexes: list[int] = Field(..., min_length=1)
    status: CandidateStatus


class RowOutcomeResponse(BaseModel):
    row_index: int
    success: bool
    status: CandidateStatus | None = None
    error_kind: str | None = None
    error: str | None = None


class BulkStatusResponse(BaseModel):
    session_id: str
    updated: int
    failed: int
    results: list[RowOutcomeResponse]


class RowErrorResponse(BaseModel):
    row_index: int
    message: str


class MaterializeResponse(BaseModel):
    """Outcome of creating documents for approved rows."""

    session_id: str
    attempted: int
    created: int
    failed: int
    errors: list[RowErrorResponse]
    document_ids: list[str]
