"""
Shared test fixtures and configuration for pytest
"""
import os
import tempfile

# Application paths are resolved at import time: point them at a scratch
# home before anything from mailmirror is imported.
os.environ["MAILMIRROR_HOME"] = tempfile.mkdtemp(prefix="mailmirror-tests-")

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from mailmirror.core.database import DatabaseConfig, LocalStore, sqlite_url
from mailmirror.core.email.imap.fetcher import FetchBatch
from mailmirror.core.models import Folder, Message, Outcome
from mailmirror.utils.config import AccountConfig, SyncConfig


@pytest.fixture
def db_config():
    """Database tuning with a short per-call deadline"""
    return DatabaseConfig(pool_size=1, max_overflow=0, query_timeout=5.0)


@pytest.fixture
async def store(tmp_path, db_config):
    """Initialised LocalStore backed by a temporary SQLite file"""
    local_store = LocalStore.from_url(sqlite_url(tmp_path / "test_emails.db"), db_config)
    outcome = await local_store.initialise()
    assert outcome.ok

    yield local_store

    await local_store.close()


@pytest.fixture
def account():
    """Account settings pointing at test servers"""
    return AccountConfig(
        email="me@example.com",
        imap_server="imap.test.com",
        smtp_server="smtp.test.com",
        network_timeout=5.0,
    )


@pytest.fixture
def sync_config():
    return SyncConfig(window_size=20, fetch_timeout=5.0)


@pytest.fixture
def test_message():
    """Sample inbox message"""
    return Message(
        sender="alice@example.com",
        recipient="me@example.com",
        subject="Test Subject",
        body="Test email body",
        sent_at=datetime(2024, 1, 15, 10, 30, 0),
        folder=Folder.INBOX,
    )


@pytest.fixture
def test_messages():
    """Three inbox messages, oldest first"""
    return [
        Message(
            sender=f"sender{i}@example.com",
            recipient="me@example.com",
            subject=f"Email {i}",
            body=f"Body {i}",
            sent_at=datetime(2024, 1, 10 + i, 9, 0, 0),
        )
        for i in range(1, 4)
    ]


@pytest.fixture
def mock_fetcher():
    """Fetcher stub whose fetch_recent result is set per test"""
    fetcher = MagicMock()
    fetcher.fetch_recent = AsyncMock(return_value=Outcome.empty(FetchBatch()))
    return fetcher


def imap_response(result="OK", lines=None):
    """Build an aioimaplib-style response"""
    return SimpleNamespace(result=result, lines=lines or [])


def raw_message(
    sender="alice@example.com",
    subject="Hello",
    body="hello",
    date="Mon, 15 Jan 2024 10:30:00 +0000",
    content_type="text/plain; charset=utf-8",
) -> bytes:
    """Build raw RFC 5322 bytes for a single-part message"""
    headers = [f"From: {sender}", "To: me@example.com", f"Subject: {subject}"]
    if date:
        headers.append(f"Date: {date}")
    headers.append("MIME-Version: 1.0")
    headers.append(f"Content-Type: {content_type}")
    return ("\r\n".join(headers) + "\r\n\r\n" + body).encode("utf-8")
