"""In-memory message search."""

from typing import Iterable, List, Optional

from mailmirror.core.models.message import Message


def filter_messages(messages: Iterable[Message], query: Optional[str]) -> List[Message]:
    """Keep messages whose subject or sender contains ``query``.

    Matching is a case-insensitive substring test. A blank query keeps
    everything; input order is preserved.
    """
    messages = list(messages)
    if not query or not query.strip():
        return messages

    needle = query.strip().casefold()
    return [
        message
        for message in messages
        if needle in message.subject.casefold() or needle in message.sender.casefold()
    ]
