"""Tests for MailServiceFactory wiring and cleanup."""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import AsyncMock, patch

import pytest

from mailmirror.core.database import sqlite_url
from mailmirror.core.email.services import ComposeService, MailServiceFactory, SyncOrchestrator
from mailmirror.core.models import Folder
from mailmirror.utils.config import ConfigManager, LoggingConfig
from mailmirror.utils.errors import DatabaseError
from mailmirror.utils.logging import configure_logging


@pytest.fixture
def config(tmp_path):
    manager = ConfigManager(tmp_path / "config.json")
    manager.set_config("account.email", "me@example.com")
    manager.set_config("database.url", sqlite_url(tmp_path / "factory.db"))
    manager.set_config("sync.window_size", 5)
    return manager


class TestMailServiceFactory:
    """Tests for resource lifecycle"""

    @pytest.mark.asyncio
    async def test_create_wires_services(self, config):
        async with MailServiceFactory.create("app-password", config) as services:
            assert isinstance(services["sync"], SyncOrchestrator)
            assert isinstance(services["compose"], ComposeService)
            assert services["sync"].window_size == 5
            assert services["compose"].sender_email == "me@example.com"
            assert services["fetcher"].account.email == "me@example.com"

            # Schema is ready on entry
            listed = await services["store"].list(Folder.INBOX)
            assert listed.ok

    @pytest.mark.asyncio
    async def test_engine_closed_on_exit(self, config):
        async with MailServiceFactory.create("pw", config) as services:
            engine_manager = services["engine_manager"]
            await engine_manager.get_engine()

        assert engine_manager._engine is None

    @pytest.mark.asyncio
    async def test_initialise_failure_raises(self, config):
        config.set_config("database.url", "nosuchdriver://nowhere", persist=False)
        with pytest.raises(DatabaseError):
            async with MailServiceFactory.create("pw", config):
                pass

    @pytest.mark.asyncio
    async def test_cleanup_errors_are_logged(self, config):
        resources = MailServiceFactory.create_resources("pw", config)
        with patch.object(
            resources["engine_manager"], "close", AsyncMock(side_effect=RuntimeError("stuck"))
        ):
            await MailServiceFactory.cleanup_resources(resources)

    @pytest.mark.asyncio
    async def test_logging_config_applied(self, config):
        config.set_config("logging.log_level", "DEBUG", persist=False)
        try:
            resources = MailServiceFactory.create_resources("pw", config)
            handlers = logging.getLogger("mailmirror").handlers
            assert any(
                isinstance(h, RotatingFileHandler) and h.level == logging.DEBUG for h in handlers
            )
            await MailServiceFactory.cleanup_resources(resources)
        finally:
            configure_logging(LoggingConfig())
