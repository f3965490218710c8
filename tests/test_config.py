"""Tests for the DocForge configuration system."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from docforge.config.loader import (
    apply_env_overrides,
    find_config_file,
    get_config_search_paths,
    load_config,
    load_toml_file,
)
from docforge.config.schema import (
    BatchConfig,
    DatabaseConfig,
    DocforgeConfig,
    ServerConfig,
    StorageConfig,
)
from docforge.config.settings import Settings, get_settings, reset_settings


class TestSchemaDefaults:
    """Test default values in schema models."""

    def test_server_config_defaults(self):
        config = ServerConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 8000
        assert config.workers == 2
        assert config.debug is False
        assert config.rate_limit_per_minute == 120
        assert config.cors_origins == []

    def test_database_config_defaults(self):
        config = DatabaseConfig()
        assert config.mongodb_url == "mongodb://localhost:27017"
        assert config.mongodb_database == "docforge"

    def test_storage_config_defaults(self):
        """Test StorageConfig has correct defaults."""
        config = StorageConfig()
        assert config.data_dir == Path("data")
        assert config.log_dir == Path("data/logs")
        assert config.max_upload_mb == 10
        assert config.documents_dir == Path("data/documents")
        assert config.max_upload_bytes == 10 * 1024 * 1024

    def test_batch_config_defaults(self):
        """Test BatchConfig has correct defaults."""
        config = BatchConfig()
        assert config.max_rows == 5000
        assert config.materialize_concurrency == 4
        assert config.session_ttl_hours == 72
        assert config.claim_timeout_seconds == 300
        assert config.status_update_retries == 3

    def test_batch_config_bounds(self):
        with pytest.raises(ValidationError):
            BatchConfig(materialize_concurrency=0)
        with pytest.raises(ValidationError):
            BatchConfig(cleanup_interval_seconds=1)

    def test_docforge_config_defaults(self):
        config = DocforgeConfig()
        assert config.app_name == "DocForge"
        assert isinstance(config.server, ServerConfig)
        assert isinstance(config.database, DatabaseConfig)
        assert isinstance(config.storage, StorageConfig)
        assert isinstance(config.batch, BatchConfig)


class TestConfigSearchPaths:
    """Test configuration file search paths."""

    def test_config_search_paths_order(self):
        """Test config search paths are in correct priority order."""
        paths = get_config_search_paths()
        assert len(paths) == 4
        assert paths[0] == Path.cwd() / "config.toml"
        assert paths[1] == Path.home() / ".config" / "docforge" / "config.toml"
        assert paths[2] == Path("/opt/docforge/config.toml")
        assert paths[3] == Path("/etc/docforge/config.toml")


class TestTomlLoading:
    """Test TOML file loading."""

    def test_load_toml_file(self, tmp_path):
        toml_content = """
app_name = "TestApp"

[server]
host = "0.0.0.0"
port = 9000
debug = true

[database]
mongodb_url = "mongodb://testhost:27017"
"""
        config_file = tmp_path / "config.toml"
        config_file.write_text(toml_content)

        data = load_toml_file(config_file)
        assert data["app_name"] == "TestApp"
        assert data["server"]["host"] == "0.0.0.0"
        assert data["server"]["port"] == 9000
        assert data["server"]["debug"] is True
        assert data["database"]["mongodb_url"] == "mongodb://testhost:27017"

    def test_load_config_from_file(self, tmp_path):
        """Test load_config with a specific file."""
        toml_content = """
app_name = "CustomApp"

[server]
port = 5000

[batch]
max_rows = 250
materialize_concurrency = 8
"""
        config_file = tmp_path / "config.toml"
        config_file.write_text(toml_content)

        config = load_config(config_file)
        assert config.app_name == "CustomApp"
        assert config.server.port == 5000
        assert config.batch.max_rows == 250
        assert config.batch.materialize_concurrency == 8
        # Defaults should still apply
        assert config.server.host == "127.0.0.1"
        assert config.batch.session_ttl_hours == 72


class TestEnvOverrides:
    """Test environment variable overrides."""

    def test_apply_server_overrides(self):
        config_dict = {}

        with patch.dict(os.environ, {"DOCFORGE_HOST": "0.0.0.0", "DOCFORGE_PORT": "3000"}):
            apply_env_overrides(config_dict)

        assert config_dict["server"]["host"] == "0.0.0.0"
        assert config_dict["server"]["port"] == 3000

    def test_apply_database_overrides(self):
        config_dict = {}

        with patch.dict(
            os.environ,
            {
                "DOCFORGE_MONGODB_URL": "mongodb://custom:27017",
                "DOCFORGE_MONGODB_DATABASE": "custom_db",
            },
        ):
            apply_env_overrides(config_dict)

        assert config_dict["database"]["mongodb_url"] == "mongodb://custom:27017"
        assert config_dict["database"]["mongodb_database"] == "custom_db"

    def test_apply_batch_overrides(self):
        """Integer batch settings are converted from strings."""
        config_dict = {"batch": {"max_rows": 10}}

        with patch.dict(
            os.environ,
            {"DOCFORGE_BATCH_MAX_ROWS": "20", "DOCFORGE_BATCH_SESSION_TTL_HOURS": "6"},
        ):
            apply_env_overrides(config_dict)

        assert config_dict["batch"]["max_rows"] == 20
        assert config_dict["batch"]["session_ttl_hours"] == 6

    def test_apply_boolean_override_false(self):
        config_dict = {"server": {"debug": True}}

        with patch.dict(os.environ, {"DOCFORGE_DEBUG": "false"}):
            apply_env_overrides(config_dict)

        assert config_dict["server"]["debug"] is False

    def test_env_overrides_file_values(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("[server]\nport = 5000\n")

        with patch.dict(os.environ, {"DOCFORGE_SERVER_PORT": "6000"}):
            config = load_config(config_file)

        assert config.server.port == 6000


class TestSettings:
    """Test the Settings class."""

    def setup_method(self):
        reset_settings()

    def test_settings_property_accessors(self, tmp_path):
        config = DocforgeConfig(
            app_name="TestApp",
            server=ServerConfig(host="0.0.0.0", port=9000),
            database=DatabaseConfig(mongodb_database="testdb"),
            storage=StorageConfig(data_dir=tmp_path, max_upload_mb=2),
            batch=BatchConfig(max_rows=100, claim_timeout_seconds=30),
        )
        settings = Settings(config=config)

        assert settings.app_name == "TestApp"
        assert settings.host == "0.0.0.0"
        assert settings.port == 9000
        assert settings.mongodb_database == "testdb"
        assert settings.documents_dir == tmp_path / "documents"
        assert settings.max_upload_size_bytes == 2 * 1024 * 1024
        assert settings.batch_max_rows == 100
        assert settings.claim_timeout_seconds == 30

    def test_settings_follow_environment(self, data_dir):
        """The test data directory override is visible through the settings."""
        assert get_settings().data_dir == data_dir

    def test_get_settings_singleton(self):
        s1 = get_settings()
        s2 = get_settings()
        assert s1 is s2

    def test_reset_settings_clears_cache(self):
        s1 = get_settings()
        reset_settings()
        s2 = get_settings()
        assert s1 is not s2


class TestFindConfigFile:
    """Test find_config_file function."""

    def test_find_config_file_in_cwd(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.toml"
        config_file.write_text("[server]\nport = 8000\n")

        monkeypatch.chdir(tmp_path)
        found = find_config_file()
        assert found == config_file
