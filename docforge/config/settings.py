"""Global settings instance for DocForge.

The settings object provides a flat interface over the structured
DocforgeConfig loaded from config.toml and environment overrides.
"""

import logging
from pathlib import Path

from docforge.config.loader import load_config
from docforge.config.schema import DocforgeConfig

logger = logging.getLogger(__name__)


class Settings:
    """Flat accessor over a DocforgeConfig instance."""

    def __init__(self, config: DocforgeConfig | None = None):
        """Initialize settings.

        Args:
            config: Optional DocforgeConfig instance. If not provided, loads from file.
        """
        self._config = config or load_config()

    @property
    def config(self) -> DocforgeConfig:
        """Get the full configuration object."""
        return self._config

    # Application
    @property
    def app_name(self) -> str:
        return self._config.app_name

    @property
    def debug(self) -> bool:
        return self._config.server.debug

    # Server
    @property
    def host(self) -> str:
        return self._config.server.host

    @property
    def port(self) -> int:
        return self._config.server.port

    @property
    def rate_limit_per_minute(self) -> int:
        return self._config.server.rate_limit_per_minute

    @property
    def cors_origins(self) -> list[str]:
        return self._config.server.cors_origins

    # Database
    @property
    def mongodb_url(self) -> str:
        return self._config.database.mongodb_url

    @property
    def mongodb_database(self) -> str:
        return self._config.database.mongodb_database

    @property
    def min_pool_size(self) -> int:
        return self._config.database.min_pool_size

    @property
    def max_pool_size(self) -> int:
        return self._config.database.max_pool_size

    # Storage
    @property
    def data_dir(self) -> Path:
        return self._config.storage.data_dir

    @property
    def documents_dir(self) -> Path:
        return self._config.storage.documents_dir

    @property
    def max_upload_size_bytes(self) -> int:
        return self._config.storage.max_upload_bytes

    # Batch
    @property
    def batch_max_rows(self) -> int:
        return self._config.batch.max_rows

    @property
    def materialize_concurrency(self) -> int:
        return self._config.batch.materialize_concurrency

    @property
    def session_ttl_hours(self) -> int:
        return self._config.batch.session_ttl_hours

    @property
    def claim_timeout_seconds(self) -> int:
        return self._config.batch.claim_timeout_seconds

    @property
    def status_update_retries(self) -> int:
        return self._config.batch.status_update_retries

    @property
    def cleanup_interval_seconds(self) -> int:
        return self._config.batch.cleanup_interval_seconds


# Global settings instance - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    The settings are loaded once and cached for subsequent calls.

    Returns:
        The global Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance.

    This is primarily useful for testing to reload configuration.
    """
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that lazily loads settings on first access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
