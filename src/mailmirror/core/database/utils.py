"""Database utilities."""

from mailmirror.core.models.message import Message


def row_to_message(row) -> Message:
    """Convert database row to Message domain object.

    Args:
        row: SQLAlchemy Row object

    Returns:
        Persisted Message (``id`` set)
    """
    return Message(
        id=row.id,
        sender=row.sender,
        recipient=row.recipient,
        subject=row.subject or "",
        body=row.body or "",
        sent_at=row.sent_at,
        folder=row.folder,
    )


def message_to_row(message: Message) -> dict:
    """Convert Message domain object to insertable column values.

    ``id`` is left out: the store assigns it.
    """
    return {
        "sender": message.sender,
        "recipient": message.recipient,
        "subject": message.subject,
        "body": message.body,
        "sent_at": message.sent_at,
        "folder": message.folder,
    }
