"""Background worker thread running its own asyncio event loop.

Interactive front ends (GUI main loops, REPLs) must never block on network
or database I/O. The worker owns a private event loop on a daemon thread;
callers hand it coroutines and get back ``concurrent.futures.Future``
objects they can poll, wait on, or wrap with ``asyncio.wrap_future``.

Completion callbacks are delivered through a caller-supplied ``dispatch``
function so the owning context decides where the callback runs::

    worker = BackgroundWorker()
    worker.start()
    worker.request_sync(orchestrator, on_done=show_report, dispatch=root.after_idle)
"""

import asyncio
import threading
from concurrent.futures import Future
from typing import Any, Awaitable, Callable, Optional, TypeVar

from mailmirror.core.email.services.sync import SyncReport, SyncOrchestrator
from mailmirror.utils.errors import ErrorHandler, MailMirrorError
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _call_directly(callback: Callable[..., Any], *args) -> None:
    callback(*args)


class BackgroundWorker:
    """Single worker thread with a dedicated event loop."""

    def __init__(self, name: str = "mailmirror-worker", stop_timeout: float = 5.0):
        self.name = name
        self.stop_timeout = stop_timeout

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._loop is not None

    def start(self) -> None:
        """Start the worker thread; a no-op if it is already running."""
        with self._lock:
            if self.is_running:
                return

            self._ready.clear()
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()

        self._ready.wait()
        logger.debug("Background worker started", extra={"thread": self.name})

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()

        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))

            loop.run_until_complete(loop.shutdown_asyncgens())
            asyncio.set_event_loop(None)
            loop.close()

    def stop(self) -> None:
        """Stop the loop, cancelling unfinished work, and join the thread."""
        with self._lock:
            loop, thread = self._loop, self._thread
            if loop is None or thread is None:
                return

            loop.call_soon_threadsafe(loop.stop)
            thread.join(self.stop_timeout)
            if thread.is_alive():
                logger.warning(
                    "Background worker did not stop in time",
                    extra={"thread": self.name, "timeout": self.stop_timeout},
                )

            self._loop = None
            self._thread = None

        logger.debug("Background worker stopped", extra={"thread": self.name})

    def submit(self, coro_factory: Callable[[], Awaitable[T]]) -> "Future[T]":
        """Run ``coro_factory()`` on the worker loop.

        The factory is invoked on the worker thread, so any loop-bound
        objects it creates belong to the worker loop.

        Raises:
            RuntimeError: If the worker has not been started
        """
        if not self.is_running:
            raise RuntimeError("Background worker is not running")

        async def _call():
            return await coro_factory()

        return asyncio.run_coroutine_threadsafe(_call(), self._loop)

    def request_sync(
        self,
        orchestrator: SyncOrchestrator,
        on_done: Optional[Callable[[SyncReport], Any]] = None,
        dispatch: Optional[Callable[..., Any]] = None,
    ) -> Future:
        """Submit a sync run and optionally hand its report back.

        Args:
            orchestrator: ``SyncOrchestrator`` to run
            on_done: Called with the ``SyncReport`` once the run finishes
            dispatch: Schedules ``on_done(report)`` in the owning context, called
                as ``dispatch(on_done, report)`` (e.g. ``loop.call_soon_threadsafe``).
                Without it ``on_done`` runs on the worker thread.

        Returns:
            Future resolving to the ``SyncReport``
        """
        future = self.submit(orchestrator.sync)

        if on_done is not None:
            deliver = dispatch or _call_directly

            def _on_complete(done: Future) -> None:
                if done.cancelled():
                    logger.info("Sync request cancelled before completion")
                    return

                error = done.exception()
                if error is None:
                    deliver(on_done, done.result())
                    return

                ErrorHandler.handle(error, "Background sync failed")
                if not isinstance(error, MailMirrorError):
                    error = MailMirrorError(f"Sync failed unexpectedly: {error}")

                deliver(on_done, SyncReport(error=error))

            future.add_done_callback(_on_complete)

        return future

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
