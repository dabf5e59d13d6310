"""Local message store with SQLAlchemy Core queries."""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from mailmirror.core.database.config import DatabaseConfig
from mailmirror.core.database.engine_manager import EngineManager
from mailmirror.core.database.base import metadata
from mailmirror.core.database.models import emails
from mailmirror.core.database.utils import message_to_row, row_to_message
from mailmirror.core.models.message import Folder, Message, normalise_timestamp
from mailmirror.core.models.outcome import Outcome
from mailmirror.utils.errors import (
    DatabaseError,
    DatabaseTimeoutError,
    DuplicateMessageError,
    MailMirrorError,
)
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LocalStore:
    """Durable repository of messages partitioned by folder.

    Every public call runs as a single statement in its own transaction,
    bounded by ``DatabaseConfig.query_timeout``. Failures never raise: they
    come back as a failed ``Outcome`` carrying a ``DatabaseError``.
    """

    def __init__(self, engine_manager: EngineManager):
        """Initialise the store.

        Args:
            engine_manager: Engine manager for database access
        """
        self.engine_mgr = engine_manager

    @classmethod
    def from_url(cls, url: str, config: Optional[DatabaseConfig] = None) -> "LocalStore":
        """Build a store with its own engine manager."""
        return cls(EngineManager(url, config))

    @property
    def timeout(self) -> float:
        return self.engine_mgr.config.query_timeout

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        default: T,
        **context,
    ) -> Outcome[T]:
        """Run one store call under its deadline, mapping failures to outcomes."""
        try:
            value = await asyncio.wait_for(call(), timeout=self.timeout)
            return Outcome.success(value)

        except asyncio.TimeoutError:
            error = DatabaseTimeoutError(
                f"Store {operation} exceeded {self.timeout}s",
                details={"operation": operation, **context},
            )
        except IntegrityError as e:
            error = DuplicateMessageError(
                "A message with the same sender, subject and date is already stored",
                details={"operation": operation, "error": str(e.orig), **context},
            )
            logger.info("Duplicate message rejected by store", extra={"operation": operation})
            return Outcome.failure(error, default)
        except MailMirrorError as e:
            error = e
        except (SQLAlchemyError, OSError) as e:
            error = DatabaseError(
                f"Store {operation} failed: {e}",
                details={"operation": operation, **context},
            )

        logger.error(
            f"Store {operation} failed: {error.message}",
            extra={"operation": operation, "error_type": type(error).__name__},
        )
        return Outcome.failure(error, default)

    async def initialise(self) -> Outcome[bool]:
        """Create the emails table if it does not exist yet."""

        async def _create() -> bool:
            engine = await self.engine_mgr.get_engine()
            async with engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
            return True

        return await self._run("initialise", _create, False)

    async def list(self, folder: str) -> Outcome[List[Message]]:
        """Return every message of ``folder``, newest first.

        Messages without ``sent_at`` sort after dated ones; ``id`` breaks ties.

        Args:
            folder: Folder to read

        Returns:
            ``OK`` with messages, ``EMPTY`` when the folder holds none,
            ``FAILED`` (with an empty list) when the store could not be read
        """

        async def _select() -> List[Message]:
            engine = await self.engine_mgr.get_engine()
            query = (
                select(emails)
                .where(emails.c.folder == folder)
                .order_by(
                    emails.c.sent_at.is_(None),
                    emails.c.sent_at.desc(),
                    emails.c.id.desc(),
                )
            )
            async with engine.connect() as conn:
                result = await conn.execute(query)
                return [row_to_message(row) for row in result.fetchall()]

        outcome = await self._run("list", _select, [], folder=folder)
        if outcome.failed:
            return outcome

        return Outcome.of(outcome.value)

    async def save(self, message: Message) -> Outcome[Optional[Message]]:
        """Insert a message and return the persisted copy.

        ``sent_at`` is stamped with the current UTC time when the caller left
        it empty on an outbound message. Inbox messages keep an absent
        ``sent_at`` so ``exists`` still matches them on the next sync.

        Args:
            message: Message to insert; its ``id`` is ignored

        Returns:
            ``OK`` with the message carrying its new ``id``; ``FAILED`` with
            ``DuplicateMessageError`` when the dedup key is already stored
        """
        if message.sent_at is None and message.folder != Folder.INBOX:
            message = message.stamped(_utcnow())

        async def _insert() -> Message:
            engine = await self.engine_mgr.get_engine()
            async with engine.begin() as conn:
                result = await conn.execute(insert(emails).values(**message_to_row(message)))
                new_id = result.inserted_primary_key[0]

            logger.debug("Saved message", extra={"message_id": new_id, "folder": message.folder})
            return message.with_id(new_id)

        return await self._run("save", _insert, None, folder=message.folder)

    async def delete(self, message_id: int) -> Outcome[bool]:
        """Delete a message by identifier.

        Deleting an unknown identifier is a no-op, not an error.

        Returns:
            ``OK`` with True if a row was removed, False otherwise
        """

        async def _delete() -> bool:
            engine = await self.engine_mgr.get_engine()
            async with engine.begin() as conn:
                result = await conn.execute(delete(emails).where(emails.c.id == message_id))
                removed = result.rowcount > 0

            if removed:
                logger.debug("Deleted message", extra={"message_id": message_id})
            return removed

        return await self._run("delete", _delete, False, message_id=message_id)

    async def exists(
        self, sender: str, subject: str, sent_at: Optional[datetime]
    ) -> Outcome[bool]:
        """Check whether a message with this exact dedup triple is stored.

        Timestamps must match exactly; an absent ``sent_at`` only matches
        stored messages without one.
        """
        sent_at = normalise_timestamp(sent_at)

        async def _exists() -> bool:
            engine = await self.engine_mgr.get_engine()
            query = (
                select(func.count())
                .select_from(emails)
                .where(emails.c.sender == sender)
                .where(emails.c.subject == (subject or ""))
                .where(emails.c.sent_at == sent_at)
            )
            async with engine.connect() as conn:
                result = await conn.execute(query)
                return (result.scalar() or 0) > 0

        return await self._run("exists", _exists, False)

    async def count(self, folder: Optional[str] = None) -> Outcome[int]:
        """Count messages, optionally within one folder."""

        async def _count() -> int:
            engine = await self.engine_mgr.get_engine()
            query = select(func.count()).select_from(emails)
            if folder is not None:
                query = query.where(emails.c.folder == folder)
            async with engine.connect() as conn:
                result = await conn.execute(query)
                return result.scalar() or 0

        return await self._run("count", _count, 0, folder=folder)

    async def close(self) -> None:
        """Dispose of the underlying engine."""
        await self.engine_mgr.close()
