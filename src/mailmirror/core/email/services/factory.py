"""Factory wiring the mail services with resource lifecycle management."""

from contextlib import asynccontextmanager
from typing import Optional

from mailmirror.core.database import EngineManager, LocalStore
from mailmirror.core.email.imap.fetcher import RemoteFetcher
from mailmirror.core.email.services.compose import ComposeService
from mailmirror.core.email.services.sync import SyncOrchestrator
from mailmirror.core.email.smtp.relay import SMTPRelay
from mailmirror.utils.config import ConfigManager
from mailmirror.utils.errors import safe_execute
from mailmirror.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


class MailServiceFactory:
    """Factory for the sync and compose services with managed resources."""

    @classmethod
    @asynccontextmanager
    async def create(cls, password: str, config: Optional[ConfigManager] = None):
        """Create services with automatic resource management (recommended).

        The store schema is created on entry and the engine disposed on exit.

        Args:
            password: Application password for the configured account
            config: ConfigManager instance (creates new if None)

        Yields:
            Resource dictionary with ``sync`` and ``compose`` services added

        Raises:
            DatabaseError: If the store cannot be initialised
        """
        resources = cls.create_resources(password, config)

        try:
            initialised = await resources["store"].initialise()
            if initialised.failed:
                raise initialised.error

            resources["sync"] = cls.create_orchestrator(resources)
            resources["compose"] = cls.create_compose(resources)
            yield resources
        finally:
            await cls.cleanup_resources(resources)

    @classmethod
    def create_resources(cls, password: str, config: Optional[ConfigManager] = None) -> dict:
        """Create all required resources.

        Returns:
            Dictionary containing:
            - config: ConfigManager
            - engine_manager: EngineManager
            - store: LocalStore
            - fetcher: RemoteFetcher
            - relay: SMTPRelay
        """
        if config is None:
            config = ConfigManager()

        app_config = config.config
        configure_logging(app_config.logging)

        engine_manager = EngineManager(app_config.database.url)
        store = LocalStore(engine_manager)
        fetcher = RemoteFetcher(app_config.account, password, app_config.sync)
        relay = SMTPRelay(app_config.account, password)

        logger.debug("Created all resources for mail services")

        return {
            "config": config,
            "engine_manager": engine_manager,
            "store": store,
            "fetcher": fetcher,
            "relay": relay,
        }

    @classmethod
    def create_orchestrator(cls, resources: dict) -> SyncOrchestrator:
        """Create the sync orchestrator from resources.

        The service doesn't own the resources; the caller cleans them up.
        """
        window = resources["config"].config.sync.window_size
        return SyncOrchestrator(resources["fetcher"], resources["store"], window)

    @classmethod
    def create_compose(cls, resources: dict) -> ComposeService:
        """Create the compose service from resources."""
        sender = resources["config"].config.account.email
        return ComposeService(resources["relay"], resources["store"], sender)

    @classmethod
    async def cleanup_resources(cls, resources: dict) -> None:
        """Dispose of the database engine."""
        if "engine_manager" in resources:
            await safe_execute(
                resources["engine_manager"].close,
                context="Error closing database connection",
            )

        logger.debug("All resources cleaned up")
