"""Batch endpoints: spreadsheet upload, candidate review and materialization."""

import logging

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status

from docforge.config import settings
from docforge.models.batch import BatchCandidate
from docforge.schemas.batch import (
    BulkStatusRequest,
    BulkStatusResponse,
    CandidateResponse,
    MaterializeResponse,
    RowErrorResponse,
    RowOutcomeResponse,
    SessionDetail,
    SessionSummary,
    StatusUpdateRequest,
    UploadResponse,
)
from docforge.services import batch_session
from docforge.services.errors import MalformedFileError, SchemaMismatchError
from docforge.services.materializer import materialize_session
from docforge.services.spreadsheet import get_file_type, open_spreadsheet

logger = logging.getLogger(__name__)

router = APIRouter()

READ_CHUNK_SIZE = 64 * 1024


async def _read_upload(file: UploadFile) -> bytes:
    """Read an upload in chunks, refusing anything over the size limit."""
    max_bytes = settings.max_upload_size_bytes
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail=f"File exceeds maximum size of {max_bytes // (1024 * 1024)} MB",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_spreadsheet(
    template_id: str = Form(..., description="Template the rows fill in"),
    file: UploadFile = File(..., description="CSV or XLSX spreadsheet"),
) -> UploadResponse:
    """Upload a spreadsheet and create a batch session with one candidate per row."""
    try:
        file_type = get_file_type(file.filename)
    except MalformedFileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    content = await _read_upload(file)
    spreadsheet = open_spreadsheet(content, file_type, max_rows=settings.batch_max_rows)
    session = await batch_session.create_session(
        template_id,
        file_name=file.filename or "upload",
        file_type=file_type,
        spreadsheet=spreadsheet,
    )

    rows_with_errors = await BatchCandidate.find(
        BatchCandidate.session_id == session.id,
        BatchCandidate.error_message != None,  # noqa: E711
    ).count()

    return UploadResponse(
        session_id=str(session.id),
        file_name=session.file_name,
        total_rows=session.total_rows,
        rows_with_errors=rows_with_errors,
        ignored_columns=session.ignored_columns,
        missing_columns=session.missing_columns,
        warnings=session.warnings,
        warning_kind=SchemaMismatchError.kind if session.warnings else None,
    )


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(
    template_id: str | None = Query(default=None, description="Only sessions for this template"),
) -> list[SessionSummary]:
    """List live batch sessions, newest first."""
    sessions = await batch_session.list_sessions(template_id)
    return [SessionSummary.from_session(s) for s in sessions]


@router.get("/{session_id}", response_model=SessionDetail)
async def get_session(session_id: str) -> SessionDetail:
    """Fetch a session with its candidates in row order."""
    session = await batch_session.get_session(session_id)
    candidates = await batch_session.list_candidates(session.id)
    summary = SessionSummary.from_session(session)
    return SessionDetail(
        **summary.model_dump(),
        candidates=[CandidateResponse.from_candidate(c) for c in candidates],
    )


@router.put("/{session_id}/candidates/{row_index}/status", response_model=CandidateResponse)
async def update_candidate_status(
    session_id: str,
    row_index: int,
    request: StatusUpdateRequest,
) -> CandidateResponse:
    """Approve, reject or reset one row."""
    candidate = await batch_session.set_candidate_status(session_id, row_index, request.status)
    return CandidateResponse.from_candidate(candidate)


@router.put("/{session_id}/bulk-status", response_model=BulkStatusResponse)
async def bulk_update_status(session_id: str, request: BulkStatusRequest) -> BulkStatusResponse:
    """Apply one status to several rows; failures are reported per row."""
    outcomes = await batch_session.bulk_set_candidate_status(session_id, request.row_indexes, request.status)
    updated = sum(1 for o in outcomes if o.success)
    return BulkStatusResponse(
        session_id=session_id,
        updated=updated,
        failed=len(outcomes) - updated,
        results=[
            RowOutcomeResponse(
                row_index=o.row_index,
                success=o.success,
                status=o.status,
                error_kind=o.error_kind,
                error=o.error,
            )
            for o in outcomes
        ],
    )


@router.get("/{session_id}/approved", response_model=list[CandidateResponse])
async def list_approved(session_id: str) -> list[CandidateResponse]:
    candidates = await batch_session.list_approved_candidates(session_id)
    return [CandidateResponse.from_candidate(c) for c in candidates]


@router.post("/{session_id}/materialize", response_model=MaterializeResponse)
async def materialize(session_id: str) -> MaterializeResponse:
    """Create documents for every approved row of the session."""
    result = await materialize_session(session_id)
    return MaterializeResponse(
        session_id=str(result.session_id),
        attempted=result.attempted,
        created=result.created,
        failed=result.failed,
        errors=[RowErrorResponse(row_index=e.row_index, message=e.message) for e in result.errors],
        document_ids=[str(d) for d in result.document_ids],
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_session(session_id: str) -> None:
    """Delete a session and its candidates (documents already created are kept)."""
    await batch_session.delete_session(session_id)
