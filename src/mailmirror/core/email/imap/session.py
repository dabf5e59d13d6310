"""Short-lived read-only IMAP session over aioimaplib."""

import asyncio
import re
import time
from datetime import datetime
from typing import List, NamedTuple, Optional

import aioimaplib

from mailmirror.core.email.constants import IMAPResponse, Timeouts
from mailmirror.core.models.message import normalise_timestamp
from mailmirror.utils.errors import (
    IMAPError,
    InvalidCredentialsError,
    MissingCredentialsError,
    NetworkError,
    NetworkTimeoutError,
)
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)

EXISTS_PATTERN = re.compile(rb"^(\d+) EXISTS")
FETCH_PATTERN = re.compile(rb"^(\d+) FETCH")
INTERNALDATE_PATTERN = re.compile(rb'INTERNALDATE "([^"]+)"')
INTERNALDATE_FORMAT = "%d-%b-%Y %H:%M:%S %z"
FETCH_ITEMS = "(INTERNALDATE BODY.PEEK[])"


class FetchedMessage(NamedTuple):
    sequence: int
    raw: bytes
    received_at: Optional[datetime]


def parse_internaldate(line: bytes) -> Optional[datetime]:
    """Extract INTERNALDATE from a FETCH line as naive UTC."""
    match = INTERNALDATE_PATTERN.search(line)
    if not match:
        return None

    try:
        value = datetime.strptime(match.group(1).decode("ascii").strip(), INTERNALDATE_FORMAT)
    except (UnicodeDecodeError, ValueError):
        return None

    return normalise_timestamp(value)


class IMAPSession:
    """One connection, opened for a single call and always released.

    Usage::

        async with IMAPSession(host, port, user, password) as session:
            total = await session.examine("INBOX")
            raw = await session.fetch_range(1, total)
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        timeout: float = Timeouts.IMAP_CONNECT,
    ):
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.timeout = timeout

        self._client: Optional[aioimaplib.IMAP4_SSL] = None
        self._selected: Optional[str] = None

    def _check_response(self, response, operation: str) -> None:
        """Raise ``IMAPError`` unless the server answered OK."""
        if response.result != IMAPResponse.OK:
            error_msg = response.lines[0] if response.lines else "No response"
            if isinstance(error_msg, (bytes, bytearray)):
                error_msg = error_msg.decode(errors="replace")

            raise IMAPError(
                f"IMAP operation failed: {operation}",
                details={
                    "response": str(error_msg),
                    "operation": operation,
                    "server": self.host,
                },
            )

    async def open(self) -> None:
        """Connect and authenticate.

        Raises:
            MissingCredentialsError: If no address or password was supplied
            InvalidCredentialsError: If the server rejects the login
            NetworkTimeoutError: If connecting or logging in times out
            NetworkError: If the server cannot be reached
            IMAPError: On other protocol failures
        """
        if not self.username or not self._password:
            raise MissingCredentialsError(
                "Account address and password are required",
                details={"server": self.host},
            )

        start_time = time.time()
        logger.info(
            "Connecting to IMAP server",
            extra={"server": self.host, "port": self.port},
        )

        try:
            self._client = aioimaplib.IMAP4_SSL(
                host=self.host, port=self.port, timeout=self.timeout
            )
            await asyncio.wait_for(
                self._client.wait_hello_from_server(), timeout=Timeouts.IMAP_CONNECT
            )

            response = await asyncio.wait_for(
                self._client.login(self.username, self._password),
                timeout=Timeouts.IMAP_LOGIN,
            )

        except asyncio.TimeoutError as e:
            await self.close()
            raise NetworkTimeoutError(
                "IMAP connection timeout", details={"server": self.host}
            ) from e

        except OSError as e:
            await self.close()
            raise NetworkError(
                f"Failed to connect to IMAP server: {e}",
                details={"server": self.host},
            ) from e

        except Exception as e:
            await self.close()
            raise IMAPError(
                f"IMAP connection error: {e}", details={"server": self.host}
            ) from e

        if response.result != IMAPResponse.OK:
            await self.close()
            raise InvalidCredentialsError(
                "IMAP authentication failed. Password may be incorrect.",
                details={"server": self.host, "username": self.username},
            )

        logger.info(
            "IMAP connection established",
            extra={
                "server": self.host,
                "duration_seconds": round(time.time() - start_time, 2),
            },
        )

    async def examine(self, folder: str = "INBOX") -> int:
        """Select ``folder`` read-only and return its message count."""
        response = await self._command(
            self._client.examine(folder), Timeouts.IMAP_SELECT, f"examine {folder}"
        )
        self._check_response(response, f"examine {folder}")
        self._selected = folder

        for line in response.lines:
            if not isinstance(line, (bytes, bytearray)):
                continue
            match = EXISTS_PATTERN.match(bytes(line))
            if match:
                return int(match.group(1))

        return 0

    async def fetch_range(self, start: int, end: int) -> List[FetchedMessage]:
        """Fetch raw messages ``start..end`` without setting the Seen flag.

        Returns:
            ``FetchedMessage`` tuples in ascending sequence order; ``received_at``
            is the server's INTERNALDATE as naive UTC, or None if unreadable
        """
        response = await self._command(
            self._client.fetch(f"{start}:{end}", FETCH_ITEMS),
            Timeouts.IMAP_FETCH,
            "fetch",
        )
        self._check_response(response, "fetch")

        messages = []
        current: Optional[int] = None
        received_at: Optional[datetime] = None

        for line in response.lines:
            if isinstance(line, bytearray):
                # Literal payload follows its "<n> FETCH" line
                if current is not None:
                    messages.append(FetchedMessage(current, bytes(line), received_at))
                    current = None
                continue

            if isinstance(line, bytes):
                match = FETCH_PATTERN.match(line)
                if match:
                    current = int(match.group(1))
                    received_at = parse_internaldate(line)

        messages.sort(key=lambda item: item.sequence)
        return messages

    async def _command(self, coro, timeout: float, operation: str):
        try:
            return await asyncio.wait_for(coro, timeout=timeout)

        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(
                f"IMAP {operation} timed out",
                details={"server": self.host, "operation": operation},
            ) from e

        except Exception as e:
            raise IMAPError(
                f"IMAP {operation} failed: {e}",
                details={"server": self.host, "operation": operation},
            ) from e

    async def close(self) -> None:
        """Close the selected folder and log out; never raises."""
        client, self._client = self._client, None
        if client is None:
            return

        if self._selected is not None:
            try:
                await asyncio.wait_for(client.close(), timeout=Timeouts.IMAP_CLOSE)
            except Exception as e:
                logger.debug(f"Error closing IMAP folder: {e}")
            finally:
                self._selected = None

        try:
            await asyncio.wait_for(client.logout(), timeout=Timeouts.IMAP_CLOSE)
            logger.debug("IMAP connection closed successfully")
        except Exception as e:
            logger.debug(f"Error closing IMAP connection: {e}")

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
