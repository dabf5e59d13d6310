"""Centralized error taxonomy and handling helpers."""

import inspect
from enum import Enum
from typing import Any, Callable, Dict, Optional

from mailmirror.utils.logging import get_logger

_logger = None


def _get_logger():
    """Get logger with lazy initialisation."""
    global _logger
    if _logger is None:
        _logger = get_logger(__name__)
    return _logger


## Error Categories


class ErrorCategory(Enum):
    """Categories of errors for better handling."""

    DATABASE = "database"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    FILE_SYSTEM = "file_system"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


## Custom Exceptions


class MailMirrorError(Exception):
    """Base exception for all mailmirror errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "An error occurred"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        """Initialise MailMirrorError with optional message and details."""
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to a dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Database Errors


class DatabaseError(MailMirrorError):
    """Base exception for database-related errors."""

    category = ErrorCategory.DATABASE
    user_message = "A database error occurred"


class DatabaseConnectionError(DatabaseError):
    """Exception for database connection failures."""

    user_message = "Failed to connect to the database"


class DatabaseTimeoutError(DatabaseError):
    """Exception for store calls that exceeded their deadline."""

    user_message = "The database did not answer in time"


class DuplicateMessageError(DatabaseError):
    """Exception when a message with the same dedup key is already stored."""

    user_message = "Message already stored"


## Network Errors


class NetworkError(MailMirrorError):
    """Base exception for network-related errors."""

    category = ErrorCategory.NETWORK
    user_message = "A network error occurred"


class IMAPError(NetworkError):
    """Exception for IMAP protocol errors."""

    user_message = "Failed to connect to email server"


class SMTPError(NetworkError):
    """Exception for SMTP protocol errors."""

    user_message = "Failed to send email"


class NetworkTimeoutError(NetworkError):
    """Exception for network timeout errors."""

    user_message = "The connection timed out"


## Authentication Errors


class AuthenticationError(MailMirrorError):
    """Base exception for authentication-related errors."""

    category = ErrorCategory.AUTHENTICATION
    user_message = "An authentication error occurred"


class InvalidCredentialsError(AuthenticationError):
    """Exception for invalid login credentials."""

    user_message = "Invalid email or password"


class MissingCredentialsError(AuthenticationError):
    """Exception for missing login credentials."""

    user_message = "Email credentials not configured"


## Validation Errors


class ValidationError(MailMirrorError):
    """Base exception for validation-related errors."""

    category = ErrorCategory.VALIDATION
    user_message = "Invalid input"


class MissingRequiredFieldError(ValidationError):
    """Exception for missing required fields."""

    user_message = "A required field is missing"


class ContentExtractionError(ValidationError):
    """Exception when a message body cannot be read."""

    user_message = "Could not read message content"


## File System Errors


class FileSystemError(MailMirrorError):
    """Base exception for file system-related errors."""

    category = ErrorCategory.FILE_SYSTEM
    user_message = "A file system error occurred"


## Configuration Errors


class ConfigurationError(MailMirrorError):
    """Base exception for configuration-related errors."""

    category = ErrorCategory.CONFIGURATION
    user_message = "A configuration error occurred"


class InvalidConfigError(ConfigurationError):
    """Exception for invalid configuration settings."""

    user_message = "Invalid configuration settings"


## Error Handler


class ErrorHandler:
    """Centralized error handling and logging."""

    @staticmethod
    def handle(
        error: Exception, context: str = "", log_traceback: bool = True
    ) -> Dict[str, Any]:
        """Handle errors with logging and user-friendly message."""
        if isinstance(error, MailMirrorError):
            _get_logger().error(f"{context}: {error.message}", extra={"context": error.details})
            if log_traceback:
                _get_logger().exception(error)
            return error.to_dict()
        else:
            _get_logger().error(f"{context}: {str(error)}")
            if log_traceback:
                _get_logger().exception(error)
            return {
                "error_type": "UnknownError",
                "category": ErrorCategory.UNKNOWN.value,
                "message": str(error),
                "details": {"context": context},
            }


## Utility Functions


def safe_execute(func: Callable, *args, default=None, context: str = "", **kwargs):
    """Execute a function, logging and returning ``default`` on failure."""
    if inspect.iscoroutinefunction(func):
        return _safe_execute_async(
            func, *args, default=default, context=context, **kwargs
        )
    else:
        try:
            return func(*args, **kwargs)

        except Exception as e:
            ErrorHandler.handle(e, context, log_traceback=False)
            return default


async def _safe_execute_async(func, *args, default, context, **kwargs):
    """Internal async safe execute helper."""
    try:
        return await func(*args, **kwargs)

    except Exception as e:
        ErrorHandler.handle(e, context, log_traceback=False)
        return default


def format_error_message(error: Optional[Exception]) -> str:
    """Format an error message for display."""
    if error is None:
        return ""
    if isinstance(error, MailMirrorError):
        return error.message
    else:
        return "An unexpected error occurred - check logs for details."
