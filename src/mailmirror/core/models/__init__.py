"""Domain models."""

from .message import Folder, Message, normalise_timestamp
from .outcome import Outcome, Status

__all__ = ["Folder", "Message", "normalise_timestamp", "Outcome", "Status"]
