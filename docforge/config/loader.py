"""Configuration loader for DocForge.

Loads configuration from TOML files. Environment variables can override
any configuration value.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from docforge.config.schema import DocforgeConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "DOCFORGE"

# Keys whose environment values are converted before validation
INT_KEYS = {
    "port",
    "workers",
    "rate_limit_per_minute",
    "min_pool_size",
    "max_pool_size",
    "max_upload_mb",
    "max_rows",
    "materialize_concurrency",
    "session_ttl_hours",
    "claim_timeout_seconds",
    "status_update_retries",
    "cleanup_interval_seconds",
}
BOOL_KEYS = {"debug"}


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/docforge/config.toml (user config)
    3. /opt/docforge/config.toml (production install)
    4. /etc/docforge/config.toml (system config)
    """
    return [
        Path.cwd() / "config.toml",
        Path.home() / ".config" / "docforge" / "config.toml",
        Path("/opt/docforge/config.toml"),
        Path("/etc/docforge/config.toml"),
    ]


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found config file: %s", path)
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = ENV_PREFIX) -> None:
    """Apply environment variable overrides to configuration dictionary.

    Environment variables are mapped as follows:
    - DOCFORGE_SERVER_HOST -> config_dict["server"]["host"]
    - DOCFORGE_DATABASE_MONGODB_URL -> config_dict["database"]["mongodb_url"]
    - DOCFORGE_BATCH_MAX_ROWS -> config_dict["batch"]["max_rows"]
    - etc.

    Note: This modifies config_dict in place.
    """
    env_mappings = {
        # Server
        f"{prefix}_SERVER_HOST": ("server", "host"),
        f"{prefix}_SERVER_PORT": ("server", "port"),
        f"{prefix}_SERVER_WORKERS": ("server", "workers"),
        f"{prefix}_SERVER_DEBUG": ("server", "debug"),
        f"{prefix}_SERVER_RATE_LIMIT_PER_MINUTE": ("server", "rate_limit_per_minute"),
        f"{prefix}_DEBUG": ("server", "debug"),  # Shorthand
        f"{prefix}_HOST": ("server", "host"),  # Shorthand
        f"{prefix}_PORT": ("server", "port"),  # Shorthand
        # Database
        f"{prefix}_DATABASE_MONGODB_URL": ("database", "mongodb_url"),
        f"{prefix}_DATABASE_MONGODB_DATABASE": ("database", "mongodb_database"),
        f"{prefix}_MONGODB_URL": ("database", "mongodb_url"),  # Shorthand
        f"{prefix}_MONGODB_DATABASE": ("database", "mongodb_database"),  # Shorthand
        # Storage
        f"{prefix}_STORAGE_DATA_DIR": ("storage", "data_dir"),
        f"{prefix}_STORAGE_LOG_DIR": ("storage", "log_dir"),
        f"{prefix}_STORAGE_MAX_UPLOAD_MB": ("storage", "max_upload_mb"),
        # Batch
        f"{prefix}_BATCH_MAX_ROWS": ("batch", "max_rows"),
        f"{prefix}_BATCH_MATERIALIZE_CONCURRENCY": ("batch", "materialize_concurrency"),
        f"{prefix}_BATCH_SESSION_TTL_HOURS": ("batch", "session_ttl_hours"),
        f"{prefix}_BATCH_CLAIM_TIMEOUT_SECONDS": ("batch", "claim_timeout_seconds"),
        f"{prefix}_BATCH_STATUS_UPDATE_RETRIES": ("batch", "status_update_retries"),
        f"{prefix}_BATCH_CLEANUP_INTERVAL_SECONDS": ("batch", "cleanup_interval_seconds"),
    }

    for env_var, path in env_mappings.items():
        value = os.environ.get(env_var)
        if value is None:
            continue

        section, key = path
        if section not in config_dict:
            config_dict[section] = {}

        if key in INT_KEYS:
            config_dict[section][key] = int(value)
        elif key in BOOL_KEYS:
            config_dict[section][key] = value.lower() in ("true", "1", "yes")
        else:
            config_dict[section][key] = value


def load_config(config_file: Path | None = None) -> DocforgeConfig:
    """Load configuration from TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        DocforgeConfig instance with all settings loaded.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info("Loading config from: %s", config_file)
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    return DocforgeConfig(**config_dict)
