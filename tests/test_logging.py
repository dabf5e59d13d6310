"""Tests for logging setup and sensitive data masking."""

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
from rich.logging import RichHandler

from mailmirror.utils.config import LoggingConfig
from mailmirror.utils.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    SensitiveDataMasker,
    configure_logging,
    get_logger,
    init_logging,
)


class TestSensitiveDataMasker:
    """Tests for masking strategies"""

    def test_password_masked(self):
        masker = SensitiveDataMasker()
        assert masker.mask_string("password=hunter2") == "password=[REDACTED]"

    def test_email_partially_hidden(self):
        masked = SensitiveDataMasker().mask_string("sent to bob@example.com")
        assert "bob@example.com" not in masked
        assert masked == "sent to b***@e***"

    def test_mask_dict(self):
        masked = SensitiveDataMasker().mask_dict({"password": "pw", "nested": {"token": "t"}, "count": 3})
        assert masked == {"password": "[REDACTED]", "nested": {"token": "[REDACTED]"}, "count": 3}

    def test_partial_strategy(self):
        masker = SensitiveDataMasker(strategy="partial")
        assert masker.mask_func("abcdefghij") == "abc****hij"


class TestSensitiveDataFilter:
    """Tests for record filtering"""

    def test_filter_masks_message_and_extras(self):
        record = logging.LogRecord(
            "mailmirror.test", logging.INFO, __file__, 1, "login with password=abc", None, None
        )
        record.password = "abc"
        record.recipient = "bob@example.com"

        assert SensitiveDataFilter().filter(record) is True
        assert record.msg == "login with password=[REDACTED]"
        assert record.password == "[REDACTED]"
        assert record.recipient == "b***@e***"


class TestJSONFormatter:
    """Tests for structured file output"""

    def test_extras_collected(self):
        record = logging.LogRecord("mailmirror.test", logging.INFO, __file__, 1, "Sync completed", None, None)
        record.new = 2

        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "Sync completed"
        assert entry["level"] == "INFO"
        assert entry["extra"] == {"new": 2}


class TestGetLogger:
    """Tests for logger naming"""

    def test_namespaced(self):
        assert get_logger("core.sync").name == "mailmirror.core.sync"
        assert get_logger("mailmirror.core.sync").name == "mailmirror.core.sync"
        assert get_logger().name == "mailmirror"


class TestConfigureLogging:
    """Tests for applying LoggingConfig at runtime"""

    @pytest.fixture(autouse=True)
    def restore_levels(self):
        yield
        configure_logging(LoggingConfig())

    def test_levels_applied_to_handlers(self):
        manager = configure_logging(LoggingConfig(log_level="debug", console_level="error"))

        file_handlers = [h for h in manager.root_logger.handlers if isinstance(h, RotatingFileHandler)]
        console_handlers = [h for h in manager.root_logger.handlers if isinstance(h, RichHandler)]

        assert [h.level for h in file_handlers] == [logging.DEBUG]
        assert [h.level for h in console_handlers] == [logging.ERROR]

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            init_logging().configure("LOUD", "INFO")
