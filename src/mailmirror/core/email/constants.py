"""Shared constants for email protocols.

Centralised configuration for:
- IMAP/SMTP response codes
- Timeout settings

Per-account timeouts (``AccountConfig.network_timeout``) and the whole-fetch
deadline (``SyncConfig.fetch_timeout``) live in the user configuration; the
values below bound the individual protocol steps.
"""

from enum import Enum


class IMAPResponse(str, Enum):
    "IMAP server response codes."

    OK = "OK"
    NO = "NO"
    BAD = "BAD"


class Timeouts:
    """Timeout settings for email operations (in seconds)."""

    # IMAP
    IMAP_CONNECT = 30.0
    IMAP_LOGIN = 30.0
    IMAP_SELECT = 10.0
    IMAP_FETCH = 30.0
    IMAP_CLOSE = 5.0

    # SMTP
    SMTP_CONNECT = 30.0
    SMTP_STARTTLS = 30.0
    SMTP_LOGIN = 30.0
    SMTP_SEND = 60.0
    SMTP_QUIT = 5.0


class SMTPPorts:
    """Standard SMTP port numbers."""

    SUBMISSION = 587  # STARTTLS
    SUBMISSION_SSL = 465  # Implicit TLS
    SMTP = 25

    @classmethod
    def is_implicit_ssl(cls, port: int) -> bool:
        return port == cls.SUBMISSION_SSL


class TransientErrors:
    """SMTP reply codes that warrant a retry."""

    CODES = (
        421,  # Service not available, closing transmission channel
        450,  # Mailbox unavailable (e.g. busy)
        451,  # Local error in processing
        452,  # Insufficient system storage
    )

    @classmethod
    def is_transient(cls, code: int) -> bool:
        return code in cls.CODES
