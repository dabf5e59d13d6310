"""Inbox synchronisation - mirrors the remote window into the local store."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional

from mailmirror.core.database.store import LocalStore
from mailmirror.core.email.imap.fetcher import RemoteFetcher
from mailmirror.core.models.message import Message
from mailmirror.utils.errors import DuplicateMessageError, MailMirrorError
from mailmirror.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)


@dataclass
class SyncReport:
    """Result of one synchronisation run."""

    new_messages: List[Message] = field(default_factory=list)
    new_count: int = 0
    skipped: int = 0
    failed: int = 0
    error: Optional[MailMirrorError] = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncOrchestrator:
    """Reconcile freshly fetched inbox messages against the local store.

    Only one run is in flight per orchestrator: a ``sync()`` issued while a
    run is active awaits that run and receives the same report.
    """

    def __init__(
        self,
        fetcher: RemoteFetcher,
        store: LocalStore,
        window_size: Optional[int] = None,
    ):
        """Initialise the orchestrator.

        Args:
            fetcher: Source of the remote inbox window
            store: Local store to mirror into
            window_size: Messages per run (fetcher's configured window if None)
        """
        self.fetcher = fetcher
        self.store = store
        self.window_size = window_size
        self._inflight: Optional[asyncio.Task] = None

    @property
    def in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def sync(self) -> SyncReport:
        """Run a sync, or join the one already running."""
        if self.in_progress:
            logger.debug("Sync already in progress, joining it")
        else:
            self._inflight = asyncio.ensure_future(self._run())

        # Shielded so a cancelled caller does not cancel the shared run
        return await asyncio.shield(self._inflight)

    @async_log_call
    async def _run(self) -> SyncReport:
        start_time = time.time()
        report = SyncReport()

        fetched = await self.fetcher.fetch_recent(self.window_size)
        if fetched.failed:
            report.error = fetched.error
            report.duration_seconds = time.time() - start_time
            logger.warning(
                "Sync aborted: inbox fetch failed",
                extra={"error": fetched.message},
            )
            return report

        batch = fetched.value
        report.skipped = batch.skipped

        for message in batch.messages:
            await self._mirror(message, report)

        report.new_count = len(report.new_messages)
        report.duration_seconds = time.time() - start_time

        logger.info(
            "Sync completed",
            extra={
                "fetched": len(batch.messages),
                "new": report.new_count,
                "skipped": report.skipped,
                "failed": report.failed,
                "duration_seconds": round(report.duration_seconds, 2),
            },
        )
        return report

    async def _mirror(self, message: Message, report: SyncReport) -> None:
        """Save ``message`` unless its dedup key is already stored."""
        exists = await self.store.exists(*message.dedup_key)
        if exists.failed:
            # Unknown state: never save blindly
            self._record_failure(report, exists.error)
            return

        if exists.value:
            return

        saved = await self.store.save(message)
        if saved.failed:
            if isinstance(saved.error, DuplicateMessageError):
                logger.debug("Message mirrored concurrently, skipping")
                return
            self._record_failure(report, saved.error)
            return

        report.new_messages.append(saved.value)

    @staticmethod
    def _record_failure(report: SyncReport, error: Optional[MailMirrorError]) -> None:
        report.failed += 1
        if report.error is None:
            report.error = error
