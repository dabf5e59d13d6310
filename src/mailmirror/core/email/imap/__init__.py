"""IMAP access: per-call sessions and the inbox fetcher."""

from .fetcher import FetchBatch, RemoteFetcher
from .session import FetchedMessage, IMAPSession

__all__ = ["FetchBatch", "FetchedMessage", "IMAPSession", "RemoteFetcher"]
