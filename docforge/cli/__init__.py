"""Command-line entry points for DocForge."""
