"""Template lookup and declared field schema resolution."""

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pydantic import ValidationError

from docforge.models.template import Template, TemplateField
from docforge.services.errors import NotFoundError


def parse_object_id(value: str | PydanticObjectId, label: str) -> PydanticObjectId:
    """Convert a string ID to an ObjectId, raising NotFoundError if it is malformed."""
    if isinstance(value, PydanticObjectId):
        return value
    try:
        return PydanticObjectId(value)
    except (InvalidId, ValidationError, TypeError):
        raise NotFoundError(f"{label} '{value}' not found")


async def get_template(template_id: str | PydanticObjectId) -> Template:
    """Get a template by ID.

    Raises:
        NotFoundError: If no such template exists.
    """
    oid = parse_object_id(template_id, "Template")
    template = await Template.get(oid)
    if template is None:
        raise NotFoundError(f"Template '{template_id}' not found")
    return template


async def get_template_fields(template_id: str | PydanticObjectId) -> list[TemplateField]:
    """Get a template's declared fields in declaration order."""
    template = await get_template(template_id)
    return list(template.fields)


def declared_field_names(fields: list[TemplateField]) -> list[str]:
    return [f.name for f in fields]
