"""Outbound relay: one SMTP session per message."""

import asyncio
import time
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from mailmirror.core.email.constants import SMTPPorts, Timeouts, TransientErrors
from mailmirror.core.models.outcome import Outcome
from mailmirror.utils.config import AccountConfig
from mailmirror.utils.errors import (
    InvalidCredentialsError,
    MissingCredentialsError,
    NetworkTimeoutError,
    SMTPError,
)
from mailmirror.utils.logging import get_logger

logger = get_logger(__name__)


class SMTPRelay:
    """Asynchronous SMTP relay with retries for transient failures."""

    def __init__(
        self,
        account: AccountConfig,
        password: str,
        max_retries: Optional[int] = None,
        base_delay: float = 1.0,
    ):
        """Initialise the relay.

        Args:
            account: Account settings (server, port, login address)
            password: Application password for the account
            max_retries: Retry attempts after the first failure
                (``account.smtp_max_retries`` when omitted)
            base_delay: First backoff delay in seconds, doubled per attempt
        """
        self.account = account
        self._password = password
        self.max_retries = account.smtp_max_retries if max_retries is None else max_retries
        self.base_delay = base_delay

    @staticmethod
    def _is_transient_error(error: Exception) -> bool:
        """Check if an error is transient and worth retrying."""
        if isinstance(error, aiosmtplib.SMTPAuthenticationError):
            return False

        if isinstance(error, aiosmtplib.SMTPResponseException):
            return TransientErrors.is_transient(error.code)

        if isinstance(error, (aiosmtplib.SMTPServerDisconnected, ConnectionError)):
            return True

        return False

    def _build_message(self, sender: str, recipient: str, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body or "", "plain", "utf-8")
        msg["From"] = sender
        msg["To"] = recipient
        msg["Subject"] = subject
        return msg

    async def _deliver(self, msg: MIMEText) -> None:
        """Open a session, send ``msg`` and quit."""
        implicit_tls = SMTPPorts.is_implicit_ssl(self.account.smtp_port)

        client = aiosmtplib.SMTP(
            hostname=self.account.smtp_server,
            port=self.account.smtp_port,
            timeout=self.account.network_timeout,
            use_tls=implicit_tls,
            start_tls=False,
        )

        await asyncio.wait_for(client.connect(), timeout=Timeouts.SMTP_CONNECT)
        try:
            if not implicit_tls:
                await asyncio.wait_for(client.starttls(), timeout=Timeouts.SMTP_STARTTLS)

            await asyncio.wait_for(
                client.login(self.account.email, self._password),
                timeout=Timeouts.SMTP_LOGIN,
            )
            await asyncio.wait_for(client.send_message(msg), timeout=Timeouts.SMTP_SEND)

        finally:
            try:
                await asyncio.wait_for(client.quit(), timeout=Timeouts.SMTP_QUIT)
            except Exception as e:
                logger.debug(f"Error closing SMTP connection: {e}")

    async def send(self, sender: str, recipient: str, subject: str, body: str) -> Outcome[bool]:
        """Send a plain-text message.

        Transient failures (4xx replies, dropped connections) are retried
        with exponential backoff; everything else fails at once.

        Returns:
            ``OK`` with True once the server accepted the message, ``FAILED``
            with an ``SMTPError``, ``InvalidCredentialsError`` or
            ``NetworkTimeoutError`` otherwise
        """
        if not self.account.email or not self._password:
            error = MissingCredentialsError("Account address and password are required")
            logger.error(error.message)
            return Outcome.failure(error, False)

        msg = self._build_message(sender, recipient, subject, body)
        send_start = time.time()
        attempt = 0

        logger.info("Sending email", extra={"recipient": recipient, "subject": subject[:50]})

        while True:
            try:
                await self._deliver(msg)

                logger.info(
                    "Email sent successfully",
                    extra={
                        "recipient": recipient,
                        "duration_seconds": round(time.time() - send_start, 2),
                        "attempts": attempt + 1,
                    },
                )
                return Outcome.success(True)

            except asyncio.TimeoutError as e:
                error = NetworkTimeoutError(
                    "SMTP operation timed out", details={"recipient": recipient}
                )
                error.__cause__ = e
                break

            except aiosmtplib.SMTPAuthenticationError as e:
                error = InvalidCredentialsError(
                    "SMTP authentication failed. Password may be incorrect.",
                    details={"server": self.account.smtp_server},
                )
                error.__cause__ = e
                break

            except (aiosmtplib.SMTPException, OSError) as e:
                attempt += 1

                if self._is_transient_error(e) and attempt <= self.max_retries:
                    delay = self.base_delay * 2 ** (attempt - 1)
                    logger.warning(
                        "Transient SMTP error, retrying",
                        extra={
                            "attempt": attempt,
                            "max_retries": self.max_retries,
                            "retry_delay": delay,
                        },
                    )
                    await asyncio.sleep(delay)
                    continue

                error = SMTPError(
                    f"Failed to send email after {attempt} attempt(s): {e}",
                    details={"recipient": recipient, "attempts": attempt},
                )
                error.__cause__ = e
                break

        logger.error(
            "Failed to send email",
            extra={
                "recipient": recipient,
                "duration_seconds": round(time.time() - send_start, 2),
                "error": error.message,
            },
        )
        return Outcome.failure(error, False)
