"""
Tests for configuration management

Tests cover:
- Configuration loading and defaults
- Persisting and reloading settings
- Validation of bad files and values
- Database engine tuning from environment variables
"""
import json

import pytest

from mailmirror.core.database.config import DatabaseConfig, get_config, reset_config
from mailmirror.utils.config import ConfigManager
from mailmirror.utils.errors import InvalidConfigError


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


class TestConfigurationDefaults:
    """Tests for default configuration values"""

    def test_creates_default_file(self, config_path):
        manager = ConfigManager(config_path)
        assert config_path.exists()
        assert manager.config.account.imap_server == "imap.gmail.com"

    def test_default_ports(self, config_path):
        account = ConfigManager(config_path).config.account
        assert account.imap_port == 993
        assert account.smtp_server == "smtp.gmail.com"
        assert account.smtp_port == 587

    def test_default_sync_window(self, config_path):
        assert ConfigManager(config_path).config.sync.window_size == 20

    def test_default_database_url(self, config_path):
        url = ConfigManager(config_path).config.database.url
        assert url.startswith("sqlite+aiosqlite:///")
        assert url.endswith("mailmirror.db")

    def test_password_never_persisted(self, config_path):
        ConfigManager(config_path)
        assert "password" not in config_path.read_text(encoding="utf-8")


class TestConfigPersistence:
    """Tests for set_config and reload"""

    def test_set_and_reload(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_config("account.email", "me@example.com")
        manager.set_config("sync.window_size", 50)

        reloaded = ConfigManager(config_path)
        assert reloaded.config.account.email == "me@example.com"
        assert reloaded.config.sync.window_size == 50

    def test_set_without_persist(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_config("account.smtp_port", 465, persist=False)

        assert manager.config.account.smtp_port == 465
        assert ConfigManager(config_path).config.account.smtp_port == 587

    def test_unknown_key(self, config_path):
        manager = ConfigManager(config_path)
        with pytest.raises(InvalidConfigError):
            manager.set_config("account.nope", 1)
        with pytest.raises(InvalidConfigError):
            manager.set_config("nosection.key", 1)

    def test_invalid_value_rejected(self, config_path):
        manager = ConfigManager(config_path)
        with pytest.raises(InvalidConfigError):
            manager.set_config("sync.window_size", 0)
        assert manager.config.sync.window_size == 20

    def test_unknown_log_level_rejected(self, config_path):
        manager = ConfigManager(config_path)
        with pytest.raises(InvalidConfigError):
            manager.set_config("logging.log_level", "LOUD")
        assert manager.config.logging.log_level == "INFO"

    def test_log_level_normalised(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_config("logging.console_level", "debug")
        assert manager.config.logging.console_level == "DEBUG"


class TestConfigValidation:
    """Tests for malformed configuration files"""

    def test_invalid_json(self, config_path):
        config_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidConfigError):
            ConfigManager(config_path)

    def test_schema_mismatch(self, config_path):
        config_path.write_text(json.dumps({"sync": {"window_size": -1}}), encoding="utf-8")
        with pytest.raises(InvalidConfigError):
            ConfigManager(config_path)


class TestDatabaseConfig:
    """Tests for engine tuning"""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DB_QUERY_TIMEOUT", "2.5")
        monkeypatch.setenv("DB_ECHO", "true")
        config = DatabaseConfig()
        assert config.query_timeout == 2.5
        assert config.echo is True

    def test_rejects_bad_values(self):
        with pytest.raises(ValueError):
            DatabaseConfig(query_timeout=0)
        with pytest.raises(ValueError):
            DatabaseConfig(pool_size=0)

    def test_singleton_reset(self):
        reset_config()
        first = get_config()
        assert get_config() is first
        reset_config()
        assert get_config() is not first
        reset_config()
