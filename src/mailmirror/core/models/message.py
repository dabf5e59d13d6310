"""Message domain model"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Tuple

from mailmirror.utils.errors import MissingRequiredFieldError


class Folder:
    """Well-known folder names.

    Folders are plain strings: any non-empty name is accepted and treated as
    its own partition.
    """

    INBOX = "INBOX"
    OUTBOX = "OUTBOX"
    ENSA = "ENSA"


DISPLAY_DATE_FORMAT = "%Y-%m-%d %H:%M"


def normalise_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as a naive UTC datetime.

    Aware datetimes are converted to UTC first, so two headers describing the
    same instant in different offsets compare equal once stored.
    """
    if value is None:
        return None

    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)

    return value


@dataclass(frozen=True)
class Message:
    """One mail item, immutable once constructed."""

    sender: str
    recipient: str
    subject: str = ""
    body: str = ""
    sent_at: Optional[datetime] = None
    folder: str = Folder.INBOX
    id: Optional[int] = None

    def __post_init__(self):
        for field_name in ("sender", "recipient", "folder"):
            value = getattr(self, field_name)
            if not value or not str(value).strip():
                raise MissingRequiredFieldError(
                    f"Message {field_name} cannot be empty",
                    details={"field": field_name},
                )

        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "subject", self.subject or "")
        object.__setattr__(self, "body", self.body or "")
        object.__setattr__(self, "sent_at", normalise_timestamp(self.sent_at))

    @property
    def dedup_key(self) -> Tuple[str, str, Optional[datetime]]:
        """The ``(sender, subject, sent_at)`` triple used to spot duplicates."""
        return (self.sender, self.subject, self.sent_at)

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)

    def with_id(self, message_id: int) -> "Message":
        """Copy of this message carrying a store identifier."""
        return replace(self, id=message_id)

    def stamped(self, when: datetime) -> "Message":
        """Copy of this message with ``sent_at`` set to ``when``."""
        return replace(self, sent_at=when)

    def __str__(self) -> str:
        if self.sent_at is None:
            return f"Unknown date | {self.sender} : {self.subject}"
        return f"{self.sent_at.strftime(DISPLAY_DATE_FORMAT)} | {self.sender} : {self.subject}"
