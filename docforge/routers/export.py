"""Export endpoints for downloading generated document data."""

from datetime import date

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import Response

from docforge.schemas.export import ExportFormat
from docforge.services import export_service

router = APIRouter()


@router.get("/documents")
async def export_documents(
    template_id: str = Query(..., description="Template whose documents are exported"),
    start_date: date = Query(..., description="First day included (YYYY-MM-DD, UTC)"),
    end_date: date = Query(..., description="Last day included (YYYY-MM-DD, UTC)"),
    format: ExportFormat = Query(default=ExportFormat.XLSX, description="Export format"),
) -> Response:
    """Export a template's generated documents created within a date range.

    One row per document: name, creation date, then one column per field.
    """
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must not be after end_date",
        )

    export = await export_service.export_documents(template_id, start_date, end_date, format)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={
            "Content-Disposition": f"attachment; filename={export.filename}",
            "X-Row-Count": str(export.row_count),
        },
    )
