"""Turn approved batch candidates into stored documents.

Each approved row is claimed, rendered, written to storage and recorded as a
GeneratedDocument, then flipped to ``created``. Rows run concurrently up to
the configured limit and fail independently; results are aggregated only
after every row has finished.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from beanie import PydanticObjectId, UpdateResponse
from pymongo.errors import PyMongoError

from docforge.config import settings
from docforge.models.batch import BatchCandidate, BatchSession, CandidateStatus, SessionStatus
from docforge.models.document import DocumentField, GeneratedDocument
from docforge.models.template import Template
from docforge.services.batch_session import (
    REVIEWABLE_SESSION_STATES,
    advance_session,
    get_session,
    utcnow,
)
from docforge.services.document_storage import DocumentStorage
from docforge.services.errors import DocforgeError, InvalidTransitionError
from docforge.services.field_schema import declared_field_names, get_template
from docforge.services.substitution import render_document

logger = logging.getLogger(__name__)


@dataclass
class RowError:
    row_index: int
    message: str


@dataclass
class MaterializeResult:
    """Aggregate outcome of one materialization run."""

    session_id: PydanticObjectId
    attempted: int = 0
    created: int = 0
    failed: int = 0
    errors: list[RowError] = field(default_factory=list)
    document_ids: list[PydanticObjectId] = field(default_factory=list)


@dataclass
class _RowResult:
    row_index: int
    claimed: bool
    document_id: PydanticObjectId | None = None
    error: str | None = None


async def _claim(candidate: BatchCandidate) -> tuple[str, BatchCandidate | None]:
    """Claim an approved candidate unless another run holds a live claim."""
    claim_id = uuid.uuid4().hex
    now = utcnow()
    stale_before = now - timedelta(seconds=settings.claim_timeout_seconds)
    claimed = await BatchCandidate.find_one(
        BatchCandidate.id == candidate.id,
        BatchCandidate.status == CandidateStatus.APPROVED,
        {"$or": [{"claim_id": None}, {"claimed_at": {"$lt": stale_before}}]},
    ).update(
        {"$set": {"claim_id": claim_id, "claimed_at": now}},
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    return claim_id, claimed


async def _release(candidate_id: PydanticObjectId, claim_id: str, message: str) -> None:
    try:
        await BatchCandidate.find_one(
            BatchCandidate.id == candidate_id,
            BatchCandidate.claim_id == claim_id,
        ).update(
            {"$set": {"claim_id": None, "claimed_at": None, "error_message": message, "updated_at": utcnow()}}
        )
    except PyMongoError as e:
        # The claim lapses after claim_timeout_seconds
        logger.warning("Could not release claim on candidate %s: %s", candidate_id, e)


async def _discard_document(document: GeneratedDocument | None, file_path: str | None, storage: DocumentStorage) -> None:
    if document is not None and document.id is not None:
        try:
            await document.delete()
        except PyMongoError as e:
            logger.error("Could not remove orphaned document %s: %s", document.id, e)
    if file_path:
        try:
            await storage.delete(file_path)
        except DocforgeError as e:
            logger.warning("Could not remove orphaned file %s: %s", file_path, e)


async def _mark_created(
    candidate_id: PydanticObjectId,
    claim_id: str,
    document_id: PydanticObjectId,
) -> BatchCandidate | None:
    """Flip a claimed approved candidate to ``created``; None if it changed meanwhile."""
    now = utcnow()
    return await BatchCandidate.find_one(
        BatchCandidate.id == candidate_id,
        BatchCandidate.status == CandidateStatus.APPROVED,
        BatchCandidate.claim_id == claim_id,
    ).update(
        {
            "$set": {
                "status": CandidateStatus.CREATED.value,
                "document_id": document_id,
                "claim_id": None,
                "claimed_at": None,
                "error_message": None,
                "updated_at": now,
            },
            "$push": {
                "status_history": {
                    "from_status": CandidateStatus.APPROVED.value,
                    "to_status": CandidateStatus.CREATED.value,
                    "changed_at": now,
                },
            },
        },
        response_type=UpdateResponse.NEW_DOCUMENT,
    )


async def _fail(
    candidate: BatchCandidate,
    claim_id: str,
    message: str,
    storage: DocumentStorage,
    document: GeneratedDocument | None = None,
    file_path: str | None = None,
) -> _RowResult:
    logger.warning("Row %d of session %s failed: %s", candidate.row_index, candidate.session_id, message)
    await _discard_document(document, file_path, storage)
    await _release(candidate.id, claim_id, message)
    return _RowResult(row_index=candidate.row_index, claimed=True, error=message)


async def _materialize_row(
    candidate: BatchCandidate,
    session: BatchSession,
    template: Template,
    known_fields: list[str],
    storage: DocumentStorage,
) -> _RowResult:
    try:
        claim_id, claimed = await _claim(candidate)
    except PyMongoError as e:
        message = f"Could not claim row: {e}"
        logger.warning("Row %d of session %s failed: %s", candidate.row_index, session.id, message)
        return _RowResult(row_index=candidate.row_index, claimed=True, error=message)
    if claimed is None:
        logger.debug("Row %d of session %s is claimed elsewhere; skipping", candidate.row_index, session.id)
        return _RowResult(row_index=candidate.row_index, claimed=False)

    file_path: str | None = None
    document: GeneratedDocument | None = None
    try:
        content = render_document(
            template.content,
            claimed.field_values(),
            known_fields=known_fields,
            content_type=template.content_type.value,
        )
        file_path = await storage.save(claimed.name, content, template.content_type.value)
        document = GeneratedDocument(
            template_id=template.id,
            name=claimed.name,
            file_path=file_path,
            fields=[DocumentField(field_name=f.field_name, field_value=f.field_value) for f in claimed.fields],
            session_id=session.id,
            row_index=claimed.row_index,
        )
        await document.insert()
    except (DocforgeError, PyMongoError) as e:
        message = e.message if isinstance(e, DocforgeError) else f"Could not save document: {e}"
        return await _fail(claimed, claim_id, message, storage, document, file_path)

    try:
        created = await _mark_created(claimed.id, claim_id, document.id)
    except PyMongoError as e:
        # The document must not outlive a row that is still approved
        return await _fail(claimed, claim_id, f"Could not mark row as created: {e}", storage, document, file_path)
    if created is None:
        # Reviewed away or reclaimed while rendering
        return await _fail(
            claimed, claim_id, "Row changed while its document was being created", storage, document, file_path
        )

    try:
        await BatchSession.find_one(BatchSession.id == session.id).update(
            {"$inc": {"created_rows": 1, "approved_rows": -1}, "$set": {"updated_at": utcnow()}}
        )
    except PyMongoError as e:
        logger.error("Session %s counters not updated for row %d: %s", session.id, claimed.row_index, e)
    return _RowResult(row_index=claimed.row_index, claimed=True, document_id=document.id)


async def materialize_session(
    session_id: str | PydanticObjectId,
    storage: DocumentStorage | None = None,
) -> MaterializeResult:
    """Create documents for every approved candidate of a session.

    Safe to call again: created rows are never rendered twice, so a retry
    only picks up rows that failed or were approved since.

    Args:
        session_id: Session to materialize.
        storage: Document storage; defaults to the configured documents directory.

    Returns:
        MaterializeResult with per-row errors for failed rows.

    Raises:
        NotFoundError: If the session or its template is gone.
        InvalidTransitionError: If the session has not finished processing.
    """
    session = await get_session(session_id)
    if session.status not in REVIEWABLE_SESSION_STATES:
        raise InvalidTransitionError(
            f"Session is '{session.status.value}'; it must be reviewed before documents are created"
        )

    template = await get_template(session.template_id)
    known_fields = declared_field_names(template.fields)
    storage = storage or DocumentStorage()

    candidates = await BatchCandidate.find(
        BatchCandidate.session_id == session.id,
        BatchCandidate.status == CandidateStatus.APPROVED,
    ).sort("+row_index").to_list()

    semaphore = asyncio.Semaphore(max(1, settings.materialize_concurrency))

    async def _bounded(candidate: BatchCandidate) -> _RowResult:
        async with semaphore:
            return await _materialize_row(candidate, session, template, known_fields, storage)

    row_results = await asyncio.gather(*(_bounded(c) for c in candidates))

    result = MaterializeResult(session_id=session.id)
    for row in sorted(row_results, key=lambda r: r.row_index):
        if not row.claimed:
            continue
        result.attempted += 1
        if row.error is None:
            result.created += 1
            result.document_ids.append(row.document_id)
        else:
            result.failed += 1
            result.errors.append(RowError(row_index=row.row_index, message=row.error))

    fresh = await BatchSession.get(session.id)
    await advance_session(fresh, SessionStatus.COMPLETED)

    logger.info(
        "Materialized session %s: attempted=%d created=%d failed=%d",
        session.id, result.attempted, result.created, result.failed,
    )
    return result
