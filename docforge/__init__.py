"""DocForge: template-based batch document generation service."""

__version__ = "0.3.0"
