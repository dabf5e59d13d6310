"""Typed operation outcomes.

Every I/O boundary (store, IMAP session, SMTP relay) reports through an
``Outcome`` instead of raising, so callers can tell "nothing there" apart
from "could not look".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from mailmirror.utils.errors import MailMirrorError, format_error_message

T = TypeVar("T")


class Status(Enum):
    """Result classification of an operation."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result value plus status and, on failure, the error behind it."""

    status: Status
    value: T
    error: Optional[MailMirrorError] = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(Status.OK, value)

    @classmethod
    def empty(cls, value: T) -> "Outcome[T]":
        return cls(Status.EMPTY, value)

    @classmethod
    def of(cls, value: T) -> "Outcome[T]":
        """``EMPTY`` for an empty collection, ``OK`` otherwise."""
        return cls.success(value) if value else cls.empty(value)

    @classmethod
    def failure(cls, error: MailMirrorError, value: T = None) -> "Outcome[T]":
        return cls(Status.FAILED, value, error)

    @property
    def ok(self) -> bool:
        """True unless the operation failed."""
        return self.status is not Status.FAILED

    @property
    def failed(self) -> bool:
        return self.status is Status.FAILED

    @property
    def is_empty(self) -> bool:
        return self.status is Status.EMPTY

    @property
    def message(self) -> str:
        """User-facing description of the failure, empty on success."""
        return format_error_message(self.error)
