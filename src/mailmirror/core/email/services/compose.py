"""Compose service - sends a message and files it in the outbox."""

from typing import Optional

from mailmirror.core.database.store import LocalStore
from mailmirror.core.email.smtp.relay import SMTPRelay
from mailmirror.core.models.message import Folder, Message
from mailmirror.core.models.outcome import Outcome
from mailmirror.utils.errors import MissingRequiredFieldError
from mailmirror.utils.logging import async_log_call, get_logger

logger = get_logger(__name__)


class ComposeService:
    """Send outbound mail and keep a copy in ``OUTBOX``."""

    def __init__(self, relay: SMTPRelay, store: LocalStore, sender_email: str):
        """Initialise compose service.

        Args:
            relay: SMTP relay used for delivery
            store: Local store receiving the outbox copy
            sender_email: Sender email address
        """
        self.relay = relay
        self.store = store
        self.sender_email = sender_email

    @staticmethod
    def validate(recipient: str, subject: str) -> None:
        """Raise ``MissingRequiredFieldError`` for a blank recipient or subject."""
        for field_name, value in (("recipient", recipient), ("subject", subject)):
            if not value or not value.strip():
                raise MissingRequiredFieldError(
                    f"The {field_name} must not be empty",
                    details={"field": field_name},
                )

    @async_log_call
    async def send(self, recipient: str, subject: str, body: str) -> Outcome[Optional[Message]]:
        """Send a message, then store it in ``OUTBOX``.

        Nothing is stored when the relay fails; there is no offline queue.

        Returns:
            The store's outcome for the outbox copy, or the relay's failure

        Raises:
            MissingRequiredFieldError: Before any I/O, if validation fails
        """
        self.validate(recipient, subject)

        sent = await self.relay.send(self.sender_email, recipient, subject, body)
        if sent.failed:
            return Outcome.failure(sent.error)

        # sent_at left empty: the store stamps the acknowledgement time
        outbound = Message(
            sender=self.sender_email,
            recipient=recipient,
            subject=subject,
            body=body,
            folder=Folder.OUTBOX,
        )

        saved = await self.store.save(outbound)
        if saved.failed:
            logger.error(
                "Message sent but outbox copy could not be stored",
                extra={"error": saved.message},
            )
        return saved
