"""Pydantic models for DocForge configuration.

These models define the structure of config.toml.
"""

from pathlib import Path

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    workers: int = 2
    debug: bool = False
    rate_limit_per_minute: int = 120
    # CORS configuration - empty list means same-origin only
    cors_origins: list[str] = []


class DatabaseConfig(BaseModel):
    """MongoDB database configuration."""

    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "docforge"
    # Connection pool settings
    min_pool_size: int = 10
    max_pool_size: int = 100


class StorageConfig(BaseModel):
    """File storage configuration."""

    data_dir: Path = Field(default_factory=lambda: Path("data"))
    log_dir: Path = Field(default_factory=lambda: Path("data/logs"))
    max_upload_mb: int = 10

    @property
    def documents_dir(self) -> Path:
        """Get the generated documents directory path."""
        return self.data_dir / "documents"

    @property
    def max_upload_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_mb * 1024 * 1024


class BatchConfig(BaseModel):
    """Batch session and materialization tuning."""

    max_rows: int = Field(default=5000, ge=1)
    materialize_concurrency: int = Field(default=4, ge=1, le=64)
    session_ttl_hours: int = Field(default=72, ge=1)
    claim_timeout_seconds: int = Field(default=300, ge=1)
    status_update_retries: int = Field(default=3, ge=1)
    cleanup_interval_seconds: int = Field(default=3600, ge=10)


class DocforgeConfig(BaseModel):
    """Main DocForge configuration loaded from config.toml."""

    app_name: str = "DocForge"
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
