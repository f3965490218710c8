"""DocForge configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/docforge/config.toml (user config)
4. /etc/docforge/config.toml (system config)
"""

from docforge.config.schema import (
    BatchConfig,
    DatabaseConfig,
    DocforgeConfig,
    ServerConfig,
    StorageConfig,
)
from docforge.config.settings import get_settings, reset_settings, settings

__all__ = [
    "BatchConfig",
    "DatabaseConfig",
    "DocforgeConfig",
    "ServerConfig",
    "StorageConfig",
    "get_settings",
    "reset_settings",
    "settings",
]
