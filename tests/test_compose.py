"""Tests for SMTPRelay and ComposeService."""

from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest

from mailmirror.core.email.services.compose import ComposeService
from mailmirror.core.email.smtp.relay import SMTPRelay
from mailmirror.core.models import Folder, Outcome
from mailmirror.utils.errors import (
    InvalidCredentialsError,
    MissingCredentialsError,
    MissingRequiredFieldError,
    SMTPError,
)

SMTP_CLASS = "mailmirror.core.email.smtp.relay.aiosmtplib.SMTP"


@pytest.fixture
def mock_smtp_client():
    """Mock aiosmtplib client"""
    client = MagicMock()
    client.connect = AsyncMock()
    client.starttls = AsyncMock()
    client.login = AsyncMock()
    client.send_message = AsyncMock()
    client.quit = AsyncMock()
    return client


@pytest.fixture
def relay(account):
    return SMTPRelay(account, "app-password", max_retries=2, base_delay=0)


class TestSMTPRelay:
    """Tests for sending through the relay"""

    @pytest.mark.asyncio
    async def test_send_success(self, relay, mock_smtp_client):
        with patch(SMTP_CLASS, return_value=mock_smtp_client) as smtp_cls:
            outcome = await relay.send("me@example.com", "bob@example.com", "Hi", "Body text")

        assert outcome.ok
        assert outcome.value is True

        kwargs = smtp_cls.call_args.kwargs
        assert kwargs["hostname"] == "smtp.test.com"
        assert kwargs["port"] == 587
        assert kwargs["use_tls"] is False
        mock_smtp_client.starttls.assert_awaited_once()
        mock_smtp_client.login.assert_awaited_once_with("me@example.com", "app-password")
        mock_smtp_client.quit.assert_awaited_once()

        msg = mock_smtp_client.send_message.call_args.args[0]
        assert msg["From"] == "me@example.com"
        assert msg["To"] == "bob@example.com"
        assert msg["Subject"] == "Hi"
        assert msg.get_payload(decode=True).decode("utf-8") == "Body text"

    @pytest.mark.asyncio
    async def test_implicit_tls_port(self, account, mock_smtp_client):
        account.smtp_port = 465
        relay = SMTPRelay(account, "pw")
        with patch(SMTP_CLASS, return_value=mock_smtp_client) as smtp_cls:
            await relay.send("me@example.com", "bob@example.com", "Hi", "")

        assert smtp_cls.call_args.kwargs["use_tls"] is True
        mock_smtp_client.starttls.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, relay, mock_smtp_client):
        mock_smtp_client.send_message.side_effect = [
            aiosmtplib.SMTPResponseException(451, "Local error in processing"),
            None,
        ]
        with patch(SMTP_CLASS, return_value=mock_smtp_client):
            outcome = await relay.send("me@example.com", "bob@example.com", "Hi", "x")

        assert outcome.ok
        assert mock_smtp_client.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, relay, mock_smtp_client):
        mock_smtp_client.connect.side_effect = aiosmtplib.SMTPServerDisconnected("gone")
        with patch(SMTP_CLASS, return_value=mock_smtp_client):
            outcome = await relay.send("me@example.com", "bob@example.com", "Hi", "x")

        assert outcome.failed
        assert isinstance(outcome.error, SMTPError)
        assert outcome.error.details["attempts"] == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, relay, mock_smtp_client):
        mock_smtp_client.send_message.side_effect = aiosmtplib.SMTPResponseException(
            550, "Mailbox unavailable"
        )
        with patch(SMTP_CLASS, return_value=mock_smtp_client):
            outcome = await relay.send("me@example.com", "bob@example.com", "Hi", "x")

        assert outcome.failed
        assert isinstance(outcome.error, SMTPError)
        assert mock_smtp_client.send_message.await_count == 1
        mock_smtp_client.quit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bad_credentials(self, relay, mock_smtp_client):
        mock_smtp_client.login.side_effect = aiosmtplib.SMTPAuthenticationError(
            535, "Username and Password not accepted"
        )
        with patch(SMTP_CLASS, return_value=mock_smtp_client):
            outcome = await relay.send("me@example.com", "bob@example.com", "Hi", "x")

        assert outcome.failed
        assert isinstance(outcome.error, InvalidCredentialsError)
        mock_smtp_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_password(self, account):
        outcome = await SMTPRelay(account, "").send("me@example.com", "bob@example.com", "Hi", "x")
        assert outcome.failed
        assert isinstance(outcome.error, MissingCredentialsError)


class TestComposeService:
    """Tests for the compose flow"""

    @pytest.fixture
    def fake_relay(self):
        fake = MagicMock()
        fake.send = AsyncMock(return_value=Outcome.success(True))
        return fake

    @pytest.mark.asyncio
    @pytest.mark.parametrize("recipient,subject", [("", "Hi"), ("bob@example.com", ""), ("  ", "  ")])
    async def test_validation_before_io(self, store, fake_relay, recipient, subject):
        service = ComposeService(fake_relay, store, "me@example.com")

        with pytest.raises(MissingRequiredFieldError):
            await service.send(recipient, subject, "body")

        fake_relay.send.assert_not_awaited()
        assert (await store.count()).value == 0

    @pytest.mark.asyncio
    async def test_sent_message_filed_in_outbox(self, store, fake_relay):
        service = ComposeService(fake_relay, store, "me@example.com")

        outcome = await service.send("bob@example.com", "Lunch?", "Noon works")

        assert outcome.ok
        fake_relay.send.assert_awaited_once_with("me@example.com", "bob@example.com", "Lunch?", "Noon works")

        outbox = await store.list(Folder.OUTBOX)
        assert len(outbox.value) == 1
        saved = outbox.value[0]
        assert saved.id == outcome.value.id
        assert saved.sender == "me@example.com"
        assert saved.recipient == "bob@example.com"
        assert saved.body == "Noon works"
        assert saved.sent_at is not None

    @pytest.mark.asyncio
    async def test_relay_failure_stores_nothing(self, store, fake_relay):
        fake_relay.send.return_value = Outcome.failure(SMTPError("rejected"), False)
        service = ComposeService(fake_relay, store, "me@example.com")

        outcome = await service.send("bob@example.com", "Hi", "body")

        assert outcome.failed
        assert isinstance(outcome.error, SMTPError)
        assert (await store.count(Folder.OUTBOX)).value == 0
