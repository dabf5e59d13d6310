"""Base database infrastructure with SQLAlchemy async engine."""

from pathlib import Path
from typing import Optional

from sqlalchemy import MetaData, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from mailmirror.core.database.config import DatabaseConfig, get_config
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)

# Shared metadata for all tables
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "pk": "pk_%(table_name)s",
    }
)


def sqlite_url(db_path: Path) -> str:
    """Async SQLite URL for a database file."""
    return f"sqlite+aiosqlite:///{db_path}"


def create_engine(
    url: str,
    config: Optional[DatabaseConfig] = None,
    echo: Optional[bool] = None,
) -> AsyncEngine:
    """Create async SQLAlchemy engine with a small connection pool.

    Args:
        url: SQLAlchemy async database URL
        config: Database configuration (uses singleton if None)
        echo: Enable SQL query logging (defaults to ``config.echo``)

    Returns:
        Configured async engine
    """
    if config is None:
        config = get_config()

    parsed = make_url(url)
    is_sqlite = parsed.get_backend_name() == "sqlite"

    if is_sqlite and parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    kwargs = {
        "echo": config.echo if echo is None else echo,
        "pool_pre_ping": True,  # Verify connections before use
    }

    if is_sqlite:
        kwargs["connect_args"] = {"timeout": config.query_timeout}
    else:
        kwargs.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
        )

    engine = create_async_engine(url, **kwargs)

    if is_sqlite:

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Set SQLite pragmas for concurrent readers and safety."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    logger.info(
        "Database engine created",
        extra={"backend": parsed.get_backend_name(), "database": parsed.database},
    )

    return engine


async def dispose_engine(engine: AsyncEngine) -> None:
    """Dispose of engine and close all connections.

    Args:
        engine: Engine to dispose
    """
    await engine.dispose()
    logger.info("Database engine disposed")
