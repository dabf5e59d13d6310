"""Database access layer - public API."""

from .base import create_engine, dispose_engine, metadata, sqlite_url
from .config import DatabaseConfig, get_config, reset_config
from .engine_manager import EngineManager
from .models import emails
from .store import LocalStore

__all__ = [
    "DatabaseConfig",
    "EngineManager",
    "LocalStore",
    "create_engine",
    "dispose_engine",
    "emails",
    "get_config",
    "metadata",
    "reset_config",
    "sqlite_url",
]
