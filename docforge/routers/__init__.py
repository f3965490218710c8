"""API routers for DocForge."""

from docforge.routers import batch, documents, export, templates

__all__ = ["templates", "batch", "documents", "export"]
