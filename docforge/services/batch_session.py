"""Batch session lifecycle and candidate review workflow.

A session moves ``pending -> processing -> reviewed -> completed`` and never
backwards. Candidate status changes go through ``validate_transition`` and a
compare-and-set on the stored status, so concurrent reviewers cannot
overwrite each other or resurrect a created row.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from beanie import PydanticObjectId, UpdateResponse

from docforge.config import settings
from docforge.models.batch import (
    SESSION_STATUS_ORDER,
    BatchCandidate,
    BatchSession,
    CandidateField,
    CandidateStatus,
    SessionStatus,
    StatusChange,
)
from docforge.services.errors import (
    ConcurrentUpdateError,
    DocforgeError,
    InvalidTransitionError,
    MalformedFileError,
    NotFoundError,
)
from docforge.services.field_schema import get_template, parse_object_id
from docforge.services.spreadsheet import ParsedSpreadsheet, analyze_headers, map_row

logger = logging.getLogger(__name__)

# Candidates are inserted in chunks while the upload is streamed
INSERT_CHUNK_SIZE = 500

# Transitions a reviewer may request. CREATED is reachable only through
# the materializer and is terminal.
REVIEW_TRANSITIONS: dict[CandidateStatus, set[CandidateStatus]] = {
    CandidateStatus.PENDING: {CandidateStatus.APPROVED, CandidateStatus.REJECTED},
    CandidateStatus.APPROVED: {CandidateStatus.PENDING, CandidateStatus.REJECTED},
    CandidateStatus.REJECTED: {CandidateStatus.PENDING, CandidateStatus.APPROVED},
    CandidateStatus.CREATED: set(),
}

# Session states in which candidates may be reviewed
REVIEWABLE_SESSION_STATES = {SessionStatus.REVIEWED, SessionStatus.COMPLETED}


@dataclass
class RowOutcome:
    """Result of one row in a bulk status update."""

    row_index: int
    success: bool
    status: CandidateStatus | None = None
    error_kind: str | None = None
    error: str | None = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from MongoDB."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def validate_transition(current: CandidateStatus, target: CandidateStatus) -> bool:
    """Check a reviewer-requested candidate status change.

    Returns:
        False if the change is a no-op (same status), True if it should be applied.

    Raises:
        InvalidTransitionError: If the change is not allowed.
    """
    if current == CandidateStatus.CREATED:
        raise InvalidTransitionError("Candidate has already been created and cannot change status")
    if current == target:
        return False
    if target not in REVIEW_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot change candidate status from '{current.value}' to '{target.value}'"
        )
    return True


def is_expired(session: BatchSession, now: datetime | None = None) -> bool:
    """A session expires when it sees no activity for the TTL without being completed."""
    if session.status == SessionStatus.COMPLETED:
        return False
    now = now or utcnow()
    return as_utc(session.updated_at) < now - timedelta(hours=settings.session_ttl_hours)


async def advance_session(session: BatchSession, target: SessionStatus) -> BatchSession:
    """Move a session forward to ``target``.

    Moving to the current status is a no-op.

    Raises:
        InvalidTransitionError: If ``target`` is behind the current status.
        ConcurrentUpdateError: If another writer moved the session first.
    """
    current = session.status
    if current == target:
        return session
    if SESSION_STATUS_ORDER.index(target) < SESSION_STATUS_ORDER.index(current):
        raise InvalidTransitionError(
            f"Session cannot move from '{current.value}' back to '{target.value}'"
        )

    updated = await BatchSession.find_one(
        BatchSession.id == session.id,
        BatchSession.status == current,
    ).update(
        {"$set": {"status": target.value, "updated_at": utcnow()}},
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if updated is None:
        fresh = await BatchSession.get(session.id)
        if fresh is not None and fresh.status == target:
            return fresh
        raise ConcurrentUpdateError(f"Session {session.id} changed status concurrently")
    logger.debug("Session %s: %s -> %s", session.id, current.value, target.value)
    return updated


async def _insert_chunk(session_id: PydanticObjectId, chunk: list[BatchCandidate]) -> None:
    await BatchCandidate.insert_many(chunk)
    await BatchSession.find_one(BatchSession.id == session_id).update(
        {
            "$inc": {"total_rows": len(chunk), "processed_rows": len(chunk)},
            "$set": {"updated_at": utcnow()},
        }
    )


async def _discard_session(session_id: PydanticObjectId) -> None:
    await BatchCandidate.find(BatchCandidate.session_id == session_id).delete()
    await BatchSession.find_one(BatchSession.id == session_id).delete()


async def create_session(
    template_id: str | PydanticObjectId,
    file_name: str,
    file_type: str,
    spreadsheet: ParsedSpreadsheet,
) -> BatchSession:
    """Create a session and one pending candidate per data row.

    Rows are mapped and stored as they stream out of the parser. If the file
    turns out to be malformed part-way through, the partial session is
    removed and the error re-raised.

    Args:
        template_id: Template whose declared fields the rows map onto.
        file_name: Original upload filename.
        file_type: "xlsx" or "csv".
        spreadsheet: Opened spreadsheet (headers plus lazy rows).

    Returns:
        The session in ``reviewed`` status.

    Raises:
        NotFoundError: If the template does not exist.
        MalformedFileError: If the file is unreadable or has no data rows.
    """
    template = await get_template(template_id)
    fields = list(template.fields)
    analysis = analyze_headers(spreadsheet.headers, fields)

    session = BatchSession(
        template_id=template.id,
        file_name=file_name,
        file_type=file_type,
        ignored_columns=analysis.ignored,
        missing_columns=analysis.missing,
        warnings=analysis.warnings(),
    )
    await session.insert()
    session = await advance_session(session, SessionStatus.PROCESSING)

    rows_with_problems = 0
    row_count = 0
    chunk: list[BatchCandidate] = []
    try:
        for row in spreadsheet.rows:
            draft = map_row(row, fields, analysis)
            if draft.error_message:
                rows_with_problems += 1
            chunk.append(
                BatchCandidate(
                    session_id=session.id,
                    row_index=draft.row_index,
                    name=draft.name,
                    error_message=draft.error_message,
                    fields=[CandidateField(field_name=n, field_value=v) for n, v in draft.fields],
                )
            )
            row_count += 1
            if len(chunk) >= INSERT_CHUNK_SIZE:
                await _insert_chunk(session.id, chunk)
                chunk = []
        if chunk:
            await _insert_chunk(session.id, chunk)
    except Exception:
        logger.warning("Upload %s aborted after %d rows; discarding session %s", file_name, row_count, session.id)
        await _discard_session(session.id)
        raise

    if row_count == 0:
        await _discard_session(session.id)
        raise MalformedFileError("File has a header row but no data rows")

    if rows_with_problems:
        await BatchSession.find_one(BatchSession.id == session.id).update(
            {"$push": {"warnings": f"{rows_with_problems} row(s) have validation problems"}}
        )

    session = await BatchSession.get(session.id)
    session = await advance_session(session, SessionStatus.REVIEWED)
    logger.info(
        "Created batch session %s for template %s: %d rows (%d with problems)",
        session.id, template.id, row_count, rows_with_problems,
    )
    return session


async def get_session(session_id: str | PydanticObjectId) -> BatchSession:
    """Fetch a live session.

    Raises:
        NotFoundError: If the session does not exist or has expired.
    """
    oid = parse_object_id(session_id, "Session")
    session = await BatchSession.get(oid)
    if session is None or is_expired(session):
        raise NotFoundError(f"Session '{session_id}' not found")
    return session


async def list_candidates(session_id: PydanticObjectId) -> list[BatchCandidate]:
    """All candidates of a session ordered by row ordinal."""
    return await BatchCandidate.find(
        BatchCandidate.session_id == session_id
    ).sort("+row_index").to_list()


async def list_approved_candidates(session_id: str | PydanticObjectId) -> list[BatchCandidate]:
    session = await get_session(session_id)
    return await BatchCandidate.find(
        BatchCandidate.session_id == session.id,
        BatchCandidate.status == CandidateStatus.APPROVED,
    ).sort("+row_index").to_list()


async def list_sessions(template_id: str | PydanticObjectId | None = None) -> list[BatchSession]:
    """List live sessions, newest first, optionally for one template."""
    query = BatchSession.find()
    if template_id is not None:
        query = BatchSession.find(BatchSession.template_id == parse_object_id(template_id, "Template"))
    sessions = await query.sort("-created_at").to_list()
    now = utcnow()
    return [s for s in sessions if not is_expired(s, now)]


async def _get_candidate(session_id: PydanticObjectId, row_index: int) -> BatchCandidate:
    candidate = await BatchCandidate.find_one(
        BatchCandidate.session_id == session_id,
        BatchCandidate.row_index == row_index,
    )
    if candidate is None:
        raise NotFoundError(f"Row {row_index} not found in session '{session_id}'")
    return candidate


def _history_entry(change: StatusChange) -> dict:
    return {
        "from_status": change.from_status.value,
        "to_status": change.to_status.value,
        "changed_at": change.changed_at,
    }


def _approved_delta(current: CandidateStatus, target: CandidateStatus) -> int:
    return int(target == CandidateStatus.APPROVED) - int(current == CandidateStatus.APPROVED)


async def _apply_status(session: BatchSession, row_index: int, target: CandidateStatus) -> BatchCandidate:
    """Compare-and-set one candidate's status, retrying on lost races."""
    for attempt in range(settings.status_update_retries):
        candidate = await _get_candidate(session.id, row_index)
        if not validate_transition(candidate.status, target):
            return candidate

        change = StatusChange(from_status=candidate.status, to_status=target, changed_at=utcnow())
        updated = await BatchCandidate.find_one(
            BatchCandidate.id == candidate.id,
            BatchCandidate.status == candidate.status,
        ).update(
            {
                "$set": {"status": target.value, "updated_at": change.changed_at},
                "$push": {"status_history": _history_entry(change)},
            },
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if updated is None:
            logger.debug("Lost status race on session %s row %d (attempt %d)", session.id, row_index, attempt + 1)
            continue

        # Every review counts as session activity for expiry
        await BatchSession.find_one(BatchSession.id == session.id).update(
            {
                "$inc": {"approved_rows": _approved_delta(candidate.status, target)},
                "$set": {"updated_at": utcnow()},
            }
        )
        return updated

    raise ConcurrentUpdateError(
        f"Row {row_index} in session '{session.id}' was modified concurrently; try again"
    )


def _require_reviewable(session: BatchSession) -> None:
    if session.status not in REVIEWABLE_SESSION_STATES:
        raise InvalidTransitionError(
            f"Session is '{session.status.value}'; candidates can only be reviewed once processing finishes"
        )


async def set_candidate_status(
    session_id: str | PydanticObjectId,
    row_index: int,
    new_status: CandidateStatus,
) -> BatchCandidate:
    """Change one candidate's review status.

    Raises:
        NotFoundError: Unknown or expired session, or unknown row.
        InvalidTransitionError: Illegal change, or the session is not reviewable.
        ConcurrentUpdateError: The compare-and-set kept losing to other writers.
    """
    session = await get_session(session_id)
    _require_reviewable(session)
    return await _apply_status(session, row_index, new_status)


async def bulk_set_candidate_status(
    session_id: str | PydanticObjectId,
    row_indexes: list[int],
    new_status: CandidateStatus,
) -> list[RowOutcome]:
    """Apply one status to many rows; each row succeeds or fails on its own."""
    session = await get_session(session_id)
    _require_reviewable(session)

    outcomes: list[RowOutcome] = []
    for row_index in dict.fromkeys(row_indexes):
        try:
            candidate = await _apply_status(session, row_index, new_status)
            outcomes.append(RowOutcome(row_index=row_index, success=True, status=candidate.status))
        except DocforgeError as e:
            outcomes.append(RowOutcome(row_index=row_index, success=False, error_kind=e.kind, error=e.message))

    succeeded = sum(1 for o in outcomes if o.success)
    logger.info(
        "Bulk status '%s' on session %s: %d succeeded, %d failed",
        new_status.value, session.id, succeeded, len(outcomes) - succeeded,
    )
    return outcomes


async def delete_session(session_id: str | PydanticObjectId) -> int:
    """Abandon a session and its candidates. Created documents are kept.

    Returns:
        Number of candidates removed.
    """
    oid = parse_object_id(session_id, "Session")
    session = await BatchSession.get(oid)
    if session is None:
        raise NotFoundError(f"Session '{session_id}' not found")
    result = await BatchCandidate.find(BatchCandidate.session_id == oid).delete()
    await session.delete()
    removed = result.deleted_count if result is not None else 0
    logger.info("Deleted batch session %s (%d candidates)", oid, removed)
    return removed
