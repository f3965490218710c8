"""Generated document endpoints (list, get, download, archive, delete)."""

import io
import logging
import zipfile
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import FileResponse, Response

from docforge.models.document import GeneratedDocument
from docforge.schemas.document import DocumentResponse, DocumentZipRequest
from docforge.services.cleanup import delete_document as delete_document_and_file
from docforge.services.document_storage import DocumentStorage, safe_filename
from docforge.services.errors import NotFoundError
from docforge.services.field_schema import parse_object_id

logger = logging.getLogger(__name__)


async def _get_document(document_id: str) -> GeneratedDocument:
    oid = parse_object_id(document_id, "Document")
    document = await GeneratedDocument.get(oid)
    if document is None:
        raise NotFoundError(f"Document '{document_id}' not found")
    return document


async def list_documents(
    template_id: str | None = Query(default=None),
    include_archived: bool = Query(default=False),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
) -> list[DocumentResponse]:
    """List generated documents, newest first."""
    conditions: dict = {}
    if template_id is not None:
        conditions["template_id"] = parse_object_id(template_id, "Template")
    if not include_archived:
        conditions["archived"] = False
    documents = await GeneratedDocument.find(conditions).sort("-created_at").skip(skip).limit(limit).to_list()
    return [DocumentResponse.from_document(d) for d in documents]


async def get_document(document_id: str) -> DocumentResponse:
    document = await _get_document(document_id)
    return DocumentResponse.from_document(document)


async def download_document(document_id: str) -> FileResponse:
    """Download the rendered document file."""
    document = await _get_document(document_id)
    storage = DocumentStorage()
    path = storage.get_path(document.file_path)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Stored file for document '{document_id}' is missing",
        )
    filename = f"{safe_filename(document.name)}{path.suffix}"
    return FileResponse(path, media_type=storage.media_type(document.file_path), filename=filename)


async def download_documents_zip(request: DocumentZipRequest) -> Response:
    """Bundle several rendered documents into one ZIP archive."""
    storage = DocumentStorage()
    buffer = io.BytesIO()
    used_names: set[str] = set()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for document_id in dict.fromkeys(request.document_ids):
            document = await _get_document(document_id)
            content = await storage.read(document.file_path)
            suffix = document.file_path.rsplit(".", 1)[-1]
            name = f"{safe_filename(document.name)}.{suffix}"
            counter = 1
            while name in used_names:
                counter += 1
                name = f"{safe_filename(document.name)}_{counter}.{suffix}"
            used_names.add(name)
            archive.writestr(name, content)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return Response(
        content=buffer.getvalue(),
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename=documents_{stamp}.zip"},
    )


async def archive_document(document_id: str) -> DocumentResponse:
    """Hide a document from listings and exports without deleting it."""
    document = await _get_document(document_id)
    document.archived = True
    document.updated_at = datetime.now(timezone.utc)
    await document.save()
    return DocumentResponse.from_document(document)


async def delete_document(document_id: str) -> None:
    await delete_document_and_file(document_id)
    logger.info("Deleted document %s", document_id)


router = APIRouter()

# /download must come before /{document_id}
router.add_api_route("", list_documents, methods=["GET"], response_model=list[DocumentResponse])
router.add_api_route("/download", download_documents_zip, methods=["POST"])
router.add_api_route("/{document_id}", get_document, methods=["GET"], response_model=DocumentResponse)
router.add_api_route("/{document_id}", delete_document, methods=["DELETE"], status_code=204)
router.add_api_route("/{document_id}/download", download_document, methods=["GET"])
router.add_api_route("/{document_id}/archive", archive_document, methods=["POST"], response_model=DocumentResponse)
