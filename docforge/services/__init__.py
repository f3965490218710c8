"""Services for the DocForge application."""

from docforge.services.document_storage import DocumentStorage
from docforge.services.errors import DocforgeError

__all__ = ["DocumentStorage", "DocforgeError"]
