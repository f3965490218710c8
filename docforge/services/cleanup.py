"""Cascading deletes and removal of expired batch sessions.

MongoDB has no foreign keys, so the cascades template -> documents and
template -> sessions -> candidates are carried out here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from beanie import PydanticObjectId
from beanie.operators import In

from docforge.config import settings
from docforge.models.batch import BatchCandidate, BatchSession, SessionStatus
from docforge.models.document import GeneratedDocument
from docforge.services.batch_session import utcnow
from docforge.services.document_storage import DocumentStorage
from docforge.services.errors import NotFoundError, TemplateInUseError
from docforge.services.field_schema import get_template, parse_object_id

logger = logging.getLogger(__name__)


@dataclass
class TemplateUsage:
    """What a template delete would remove."""

    template_id: PydanticObjectId
    sessions: int = 0
    candidates: int = 0
    documents: int = 0
    archived_documents: int = 0

    @property
    def in_use(self) -> bool:
        return self.documents > 0 or self.archived_documents > 0


async def get_template_usage(template_id: str | PydanticObjectId) -> TemplateUsage:
    template = await get_template(template_id)
    session_ids = [
        s.id for s in await BatchSession.find(BatchSession.template_id == template.id).to_list()
    ]
    candidates = 0
    if session_ids:
        candidates = await BatchCandidate.find(In(BatchCandidate.session_id, session_ids)).count()
    documents = await GeneratedDocument.find(
        GeneratedDocument.template_id == template.id,
        GeneratedDocument.archived == False,  # noqa: E712
    ).count()
    archived = await GeneratedDocument.find(
        GeneratedDocument.template_id == template.id,
        GeneratedDocument.archived == True,  # noqa: E712
    ).count()
    return TemplateUsage(
        template_id=template.id,
        sessions=len(session_ids),
        candidates=candidates,
        documents=documents,
        archived_documents=archived,
    )


async def delete_document(
    document_id: str | PydanticObjectId,
    storage: DocumentStorage | None = None,
) -> None:
    """Delete a generated document and its stored file.

    Raises:
        NotFoundError: If the document does not exist.
    """
    oid = parse_object_id(document_id, "Document")
    document = await GeneratedDocument.get(oid)
    if document is None:
        raise NotFoundError(f"Document '{document_id}' not found")
    storage = storage or DocumentStorage()
    if not await storage.delete(document.file_path):
        logger.warning("Stored file %s for document %s was already gone", document.file_path, oid)
    await document.delete()


async def _delete_sessions(session_ids: list[PydanticObjectId]) -> int:
    if not session_ids:
        return 0
    await BatchCandidate.find(In(BatchCandidate.session_id, session_ids)).delete()
    result = await BatchSession.find(In(BatchSession.id, session_ids)).delete()
    return result.deleted_count if result is not None else 0


async def delete_template(
    template_id: str | PydanticObjectId,
    cascade: bool = False,
    storage: DocumentStorage | None = None,
) -> TemplateUsage:
    """Delete a template together with its sessions and, on cascade, its documents.

    Raises:
        NotFoundError: If the template does not exist.
        TemplateInUseError: If documents exist and ``cascade`` is not set.
    """
    template = await get_template(template_id)
    usage = await get_template_usage(template.id)
    if usage.in_use and not cascade:
        raise TemplateInUseError(
            f"Template '{template.name}' has {usage.documents + usage.archived_documents} "
            "generated documents; archive it or delete with cascade"
        )

    storage = storage or DocumentStorage()
    documents = await GeneratedDocument.find(GeneratedDocument.template_id == template.id).to_list()
    for document in documents:
        await storage.delete(document.file_path)
    await GeneratedDocument.find(GeneratedDocument.template_id == template.id).delete()

    sessions = await BatchSession.find(BatchSession.template_id == template.id).to_list()
    await _delete_sessions([s.id for s in sessions])
    await template.delete()

    logger.info(
        "Deleted template %s with %d sessions and %d documents",
        template.id, usage.sessions, len(documents),
    )
    return usage


async def purge_expired_sessions(now: datetime | None = None) -> int:
    """Remove incomplete sessions idle for longer than the TTL.

    Returns:
        Number of sessions removed.
    """
    now = now or utcnow()
    cutoff = now - timedelta(hours=settings.session_ttl_hours)
    expired = await BatchSession.find(
        {"status": {"$ne": SessionStatus.COMPLETED.value}},
        BatchSession.updated_at < cutoff,
    ).to_list()
    removed = await _delete_sessions([s.id for s in expired])
    if removed:
        logger.info("Purged %d expired batch sessions", removed)
    return removed
