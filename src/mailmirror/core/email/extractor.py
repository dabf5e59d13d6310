"""Plain-text body extraction from MIME messages."""

import re
from email import message_from_bytes, policy
from email.errors import MessageError
from email.message import EmailMessage, Message

from mailmirror.utils.errors import ContentExtractionError
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)


class ContentExtractor:
    """Reduce a fetched message to one display-ready plain-text string.

    Rules, in order:
    - ``text/plain`` message: its content verbatim.
    - ``multipart/*`` message: the first direct ``text/plain`` part verbatim;
      failing that, every ``text/html`` part with tags stripped, concatenated.
    - anything else, including ``message/rfc822``: ``UNSUPPORTED_CONTENT``.

    Nested multiparts are not descended into. Tag stripping is a single regex
    pass; entities are left as they are.
    """

    UNSUPPORTED_CONTENT = "Unsupported content."
    TAG_PATTERN = re.compile(r"<[^>]*>")

    @classmethod
    def extract(cls, msg: Message) -> str:
        """Extract the body text of a parsed message.

        Args:
            msg: Message parsed with ``policy.default``

        Returns:
            Plain-text body

        Raises:
            ContentExtractionError: If a part's content cannot be read
        """
        if msg.get_content_type() == "text/plain":
            return cls._read(msg)

        if msg.get_content_maintype() == "multipart":
            return cls._extract_multipart(msg)

        return cls.UNSUPPORTED_CONTENT

    @classmethod
    def extract_from_bytes(cls, raw: bytes) -> str:
        """Parse raw RFC 5322 bytes and extract the body text."""
        try:
            msg = message_from_bytes(raw, policy=policy.default)
        except (TypeError, ValueError) as e:
            raise ContentExtractionError("Failed to parse message bytes") from e

        return cls.extract(msg)

    @classmethod
    def strip_tags(cls, html: str) -> str:
        return cls.TAG_PATTERN.sub("", html)

    @classmethod
    def _extract_multipart(cls, msg: Message) -> str:
        html_text = []

        for part in msg.get_payload():
            content_type = part.get_content_type()

            if content_type == "text/plain":
                return cls._read(part)

            if content_type == "text/html":
                html_text.append(cls.strip_tags(cls._read(part)))

        return "".join(html_text)

    @staticmethod
    def _read(part: Message) -> str:
        """Decoded text content of a single part."""
        try:
            if isinstance(part, EmailMessage):
                content = part.get_content()
            else:
                content = part.get_payload(decode=True)

            if isinstance(content, bytes):
                charset = part.get_content_charset() or "utf-8"
                content = content.decode(charset)

            return content if content is not None else ""

        except (
            LookupError, UnicodeDecodeError, ValueError, KeyError, AttributeError, MessageError
        ) as e:
            logger.warning(
                "Unreadable message part",
                extra={"content_type": part.get_content_type(), "error": str(e)},
            )
            raise ContentExtractionError(
                "Failed to read message content",
                details={"content_type": part.get_content_type()},
            ) from e
