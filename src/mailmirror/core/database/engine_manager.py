"""Engine manager wrapping SQLAlchemy connection pool."""

import asyncio
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from mailmirror.core.database.base import create_engine, dispose_engine
from mailmirror.core.database.config import DatabaseConfig, get_config
from mailmirror.utils.errors import DatabaseConnectionError
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)


class EngineManager:
    """Manages SQLAlchemy async engine lifecycle and health."""

    def __init__(self, url: str, config: Optional[DatabaseConfig] = None) -> None:
        """Initialise engine manager.

        Args:
            url: SQLAlchemy async database URL
            config: Database configuration (uses singleton if None)
        """
        self.url = url
        self.config = config or get_config()

        self._engine: Optional[AsyncEngine] = None
        self._lock = asyncio.Lock()

    async def get_engine(self) -> AsyncEngine:
        """Get or create the async engine.

        Returns:
            AsyncEngine instance with connection pooling

        Raises:
            DatabaseConnectionError: If engine creation fails
        """
        async with self._lock:
            if self._engine is None:
                try:
                    self._engine = create_engine(self.url, config=self.config)
                except Exception as e:
                    raise DatabaseConnectionError(
                        "Failed to create database engine",
                        details={"error": str(e)},
                    ) from e

        return self._engine

    async def close(self) -> None:
        """Dispose of engine and close all pooled connections."""
        async with self._lock:
            if self._engine is not None:
                engine, self._engine = self._engine, None
                await dispose_engine(engine)

    async def health_check(self) -> bool:
        """Run ``SELECT 1`` against the database.

        Returns:
            True if healthy, False otherwise
        """
        try:
            engine = await self.get_engine()

            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                healthy = result.scalar() == 1

            logger.debug(f"Database health check: {'OK' if healthy else 'FAILED'}")
            return healthy

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    # Context manager support
    async def __aenter__(self):
        """Context manager entry."""
        await self.get_engine()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Context manager exit."""
        await self.close()
        return False
