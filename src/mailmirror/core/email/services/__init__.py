"""Mail services: inbox sync, compose and their wiring."""

from .compose import ComposeService
from .factory import MailServiceFactory
from .sync import SyncOrchestrator, SyncReport

__all__ = ["ComposeService", "MailServiceFactory", "SyncOrchestrator", "SyncReport"]
