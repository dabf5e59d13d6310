"""Configuration manager for persistent settings stored as JSON."""

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import (
    ConfigurationError,
    FileSystemError,
    InvalidConfigError,
    MailMirrorError,
)
from .logging import get_logger, log_call
from .paths import CONFIG_PATH, DATABASE_PATH

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AccountConfig(BaseModel):
    """Pydantic model for the mail account."""

    email: str = ""
    imap_server: str = "imap.gmail.com"
    imap_port: int = 993
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    network_timeout: float = 30.0  # in seconds
    smtp_max_retries: int = 3


class SyncConfig(BaseModel):
    """Pydantic model for inbox synchronisation settings."""

    window_size: int = 20
    fetch_timeout: float = 60.0  # whole fetch deadline, in seconds

    @field_validator("window_size")
    @classmethod
    def _positive_window(cls, value: int) -> int:
        if value < 1:
            raise ValueError("window_size must be >= 1")
        return value


class DatabaseSettings(BaseModel):
    """Pydantic model for the local store location."""

    url: str = f"sqlite+aiosqlite:///{DATABASE_PATH}"


class LoggingConfig(BaseModel):
    """Pydantic model for logging settings."""

    log_level: str = "INFO"
    console_level: str = "WARNING"

    @field_validator("log_level", "console_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown logging level: {value}")
        return level


class AppConfig(BaseModel):
    """Pydantic model for overall application configuration."""

    version: str = "0.1.0"
    account: AccountConfig = Field(default_factory=AccountConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """Manages persistent application configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        self.path = Path(config_path) if config_path else CONFIG_PATH
        self.config = self._load_or_create_config()
        logger.info(f"Configuration loaded from {self.path}")

    def _load_or_create_config(self) -> AppConfig:
        """Load configuration from file or create default if not present."""

        from pydantic import ValidationError

        if not self.path.exists():
            logger.info("No config file found, creating default configuration.")
            config = AppConfig()
            self._save_config(config)
            return config

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            config = AppConfig(**data)
            logger.debug("Configuration successfully loaded and validated.")
            return config

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse config file: {e}")
            raise InvalidConfigError(f"Configuration file is not valid JSON: {str(e)}") from e
        except ValidationError as e:
            logger.error(f"Failed to validate config file: {e}")
            raise InvalidConfigError(
                f"Configuration data does not match expected schema: {str(e)}"
            ) from e
        except OSError as e:
            raise FileSystemError(f"Failed to read configuration file: {self.path}") from e

    def _save_config(self, config: Optional[AppConfig] = None):
        """Save the current configuration to file."""

        config = config or self.config

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(config.model_dump(), f, indent=2, ensure_ascii=False)
            logger.debug("Configuration successfully saved.")
        except OSError as e:
            raise FileSystemError(f"Failed to write configuration file: {str(e)}") from e

    def save(self) -> None:
        """Persist the in-memory configuration."""
        self._save_config()

    @log_call
    def set_config(self, key_path: str, value: Any, persist: bool = True):
        """Set a configuration value using dot-separated key path."""

        from pydantic import ValidationError

        try:
            keys = key_path.split(".")
            section = self.config

            for key in keys[:-1]:
                if not hasattr(section, key):
                    raise InvalidConfigError(
                        f"Configuration path '{key_path}' is invalid: '{key}' not found"
                    )
                section = getattr(section, key)

            if not isinstance(section, BaseModel) or keys[-1] not in type(section).model_fields:
                raise InvalidConfigError(
                    f"Configuration key '{keys[-1]}' does not exist in path '{key_path}'"
                )

            # Re-validate the whole section so bad values never reach disk
            updated = type(section)(**{**section.model_dump(), keys[-1]: value})
            setattr(section, keys[-1], getattr(updated, keys[-1]))

            if persist:
                self._save_config()

            logger.info(f"Config key '{key_path}' updated.")

        except MailMirrorError:
            raise
        except ValidationError as e:
            raise InvalidConfigError(f"Invalid value for '{key_path}': {str(e)}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to set configuration key '{key_path}': {str(e)}") from e
