"""Template endpoints: registry, usage, input workbooks and previews."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import Response

from docforge.models.template import ContentType, Template, TemplateCategory, TemplateField
from docforge.schemas.template import (
    PreviewRequest,
    PreviewResponse,
    TemplateCreate,
    TemplateResponse,
    TemplateUsageResponse,
)
from docforge.services.cleanup import delete_template as delete_template_cascade
from docforge.services.cleanup import get_template_usage
from docforge.services.document_storage import safe_filename
from docforge.services.errors import RenderError
from docforge.services.field_schema import declared_field_names, get_template, get_template_fields
from docforge.services.spreadsheet import build_input_workbook
from docforge.services.substitution import check_well_formed, find_placeholders, render_preview

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(request: TemplateCreate) -> TemplateResponse:
    """Create a template from explicit content and declared fields."""
    try:
        check_well_formed(request.content)
    except RenderError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=e.message)

    try:
        template = Template(
            name=request.name,
            description=request.description,
            category=request.category,
            content=request.content,
            content_type=request.content_type,
            fields=request.fields,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(e))
    await template.insert()

    placeholders = find_placeholders(template.content)
    undeclared = set(placeholders) - set(declared_field_names(template.fields))
    if undeclared:
        logger.info("Template %s has undeclared placeholders: %s", template.id, ", ".join(sorted(undeclared)))
    return TemplateResponse.from_template(template, placeholders)


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    category: TemplateCategory | None = Query(default=None),
    include_archived: bool = Query(default=False),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
) -> list[TemplateResponse]:
    """List templates by name."""
    conditions: dict = {}
    if category is not None:
        conditions["category"] = category.value
    if not include_archived:
        conditions["archived"] = False
    templates = await Template.find(conditions).sort("+name").skip(skip).limit(limit).to_list()
    return [TemplateResponse.from_template(t, find_placeholders(t.content)) for t in templates]


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template_detail(template_id: str) -> TemplateResponse:
    template = await get_template(template_id)
    return TemplateResponse.from_template(template, find_placeholders(template.content))


@router.get("/{template_id}/fields", response_model=list[TemplateField])
async def list_template_fields(template_id: str) -> list[TemplateField]:
    """Declared fields in declaration order."""
    return await get_template_fields(template_id)


@router.post("/{template_id}/archive", response_model=TemplateResponse)
async def archive_template(template_id: str) -> TemplateResponse:
    template = await get_template(template_id)
    template.archived = True
    template.updated_at = datetime.now(timezone.utc)
    await template.save()
    logger.info("Archived template %s", template.id)
    return TemplateResponse.from_template(template, find_placeholders(template.content))


@router.get("/{template_id}/usage", response_model=TemplateUsageResponse)
async def template_usage(template_id: str) -> TemplateUsageResponse:
    """Sessions, candidates and documents a cascading delete would remove."""
    usage = await get_template_usage(template_id)
    return TemplateUsageResponse(
        template_id=str(usage.template_id),
        sessions=usage.sessions,
        candidates=usage.candidates,
        documents=usage.documents,
        archived_documents=usage.archived_documents,
        in_use=usage.in_use,
    )


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str,
    cascade: bool = Query(default=False, description="Also delete generated documents"),
) -> None:
    """Delete a template. Templates with documents need ``cascade=true``."""
    await delete_template_cascade(template_id, cascade=cascade)


@router.get("/{template_id}/input-workbook")
async def download_input_workbook(template_id: str) -> Response:
    """Download an xlsx with one column per declared field, ready to fill in."""
    template = await get_template(template_id)
    content = build_input_workbook(template)
    filename = f"{safe_filename(template.name)}_input.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/{template_id}/preview", response_model=PreviewResponse)
async def preview_template(template_id: str, request: PreviewRequest) -> PreviewResponse:
    """Render a preview with filled values highlighted and missing ones marked."""
    template = await get_template(template_id)
    known = declared_field_names(template.fields) or None
    html = render_preview(
        template.content,
        request.values,
        known_fields=known,
        escape_content=template.content_type == ContentType.TEXT,
    )
    return PreviewResponse(
        html=html,
        fields=request.values,
        template={
            "id": str(template.id),
            "name": template.name,
            "category": template.category.value,
            "content_type": template.content_type.value,
        },
    )
