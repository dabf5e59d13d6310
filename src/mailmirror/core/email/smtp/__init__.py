"""SMTP relay for outbound mail."""

from .relay import SMTPRelay

__all__ = ["SMTPRelay"]
