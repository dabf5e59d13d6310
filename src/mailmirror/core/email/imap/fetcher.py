"""Fetch the most recent window of inbox messages."""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from email import message_from_bytes, policy
from email.errors import MessageError
from typing import Callable, List, Optional

from mailmirror.core.email.extractor import ContentExtractor
from mailmirror.core.email.imap.session import FetchedMessage, IMAPSession
from mailmirror.core.models.message import Folder, Message
from mailmirror.core.models.outcome import Outcome
from mailmirror.utils.config import AccountConfig, SyncConfig
from mailmirror.utils.errors import (
    ContentExtractionError,
    MailMirrorError,
    NetworkTimeoutError,
    ValidationError,
)
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class FetchBatch:
    """Messages materialised from one fetch, oldest first."""

    messages: List[Message] = field(default_factory=list)
    skipped: int = 0


class RemoteFetcher:
    """Read-only access to the account's remote inbox."""

    def __init__(
        self,
        account: AccountConfig,
        password: str,
        sync_config: Optional[SyncConfig] = None,
        session_factory: Optional[Callable[..., IMAPSession]] = None,
    ):
        """Initialise the fetcher.

        Args:
            account: Account settings; ``account.email`` is both the login
                and the recipient stamped on fetched messages
            password: Application password for the account
            sync_config: Window size and fetch deadline
            session_factory: Builds the IMAP session (``IMAPSession`` by default)
        """
        self.account = account
        self._password = password
        self.sync_config = sync_config or SyncConfig()
        self._session_factory = session_factory or IMAPSession

    def _open_session(self) -> IMAPSession:
        return self._session_factory(
            self.account.imap_server,
            self.account.imap_port,
            self.account.email,
            self._password,
            timeout=self.account.network_timeout,
        )

    async def fetch_recent(self, max_count: Optional[int] = None) -> Outcome[FetchBatch]:
        """Fetch the last ``max_count`` inbox messages.

        Messages are returned oldest first. A message that cannot be parsed is
        skipped and counted in ``FetchBatch.skipped``; the rest of the window
        is still delivered.

        Args:
            max_count: Window size (``SyncConfig.window_size`` when omitted)

        Returns:
            ``OK`` with the batch, ``EMPTY`` when the inbox has nothing to
            offer, ``FAILED`` on connection, authentication, protocol or
            deadline failures

        Raises:
            ValueError: If ``max_count`` is below 1
        """
        if max_count is None:
            max_count = self.sync_config.window_size
        if max_count < 1:
            raise ValueError("max_count must be >= 1")

        start_time = time.time()
        deadline = self.sync_config.fetch_timeout

        try:
            batch = await asyncio.wait_for(self._fetch(max_count), timeout=deadline)

        except asyncio.TimeoutError:
            error = NetworkTimeoutError(
                f"Inbox fetch exceeded {deadline}s",
                details={"server": self.account.imap_server},
            )
            logger.error(error.message, extra={"max_count": max_count})
            return Outcome.failure(error, FetchBatch())

        except MailMirrorError as e:
            logger.error(
                f"Inbox fetch failed: {e.message}",
                extra={"error_type": type(e).__name__, "server": self.account.imap_server},
            )
            return Outcome.failure(e, FetchBatch())

        logger.info(
            "Fetched inbox window",
            extra={
                "fetched": len(batch.messages),
                "skipped": batch.skipped,
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )

        return Outcome.success(batch) if batch.messages else Outcome.empty(batch)

    async def verify_credentials(self) -> Outcome[bool]:
        """Connect, log in and log out again to validate the credentials."""
        try:
            async with self._open_session():
                pass

        except MailMirrorError as e:
            logger.warning(
                f"Credential check failed: {e.message}",
                extra={"error_type": type(e).__name__},
            )
            return Outcome.failure(e, False)

        return Outcome.success(True)

    async def _fetch(self, max_count: int) -> FetchBatch:
        async with self._open_session() as session:
            total = await session.examine(Folder.INBOX)
            if total == 0:
                return FetchBatch()

            start = max(1, total - max_count + 1)
            raw_messages = await session.fetch_range(start, total)

        return self._materialise(raw_messages)

    def _materialise(self, raw_messages: List[FetchedMessage]) -> FetchBatch:
        batch = FetchBatch()

        for fetched in raw_messages:
            try:
                batch.messages.append(self.to_message(fetched.raw, fetched.received_at))

            except ValidationError as e:
                batch.skipped += 1
                logger.warning(
                    "Skipping unreadable message",
                    extra={"sequence": fetched.sequence, "error": e.message},
                )

        return batch

    def to_message(self, raw: bytes, received_at: Optional[datetime] = None) -> Message:
        """Build an unsaved inbox ``Message`` from raw RFC 5322 bytes.

        ``received_at`` (the server's arrival time) stands in for a missing
        or unparseable ``Date`` header.

        Raises:
            ContentExtractionError: If the headers or body cannot be read
            MissingRequiredFieldError: If the message has no sender
        """
        try:
            parsed = message_from_bytes(raw, policy=policy.default)
            sender = str(parsed.get("From", "") or "")
            subject = str(parsed.get("Subject", "") or "")
            sent_at = self._sent_at(parsed) or received_at
        except (MessageError, TypeError, ValueError, IndexError) as e:
            raise ContentExtractionError("Failed to parse message headers") from e

        return Message(
            sender=sender,
            recipient=self.account.email,
            subject=subject,
            body=ContentExtractor.extract(parsed),
            sent_at=sent_at,
            folder=Folder.INBOX,
        )

    @staticmethod
    def _sent_at(parsed):
        try:
            header = parsed["Date"]
            return getattr(header, "datetime", None) if header is not None else None
        except (MessageError, TypeError, ValueError, IndexError):
            return None
