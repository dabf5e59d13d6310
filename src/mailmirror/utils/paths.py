"""Centralized path definitions for mailmirror.

All application paths hang off a single home directory, ``~/.mailmirror`` by
default. Set ``MAILMIRROR_HOME`` to relocate everything (tests do this).
"""

import os
from pathlib import Path

# Base application directory
MAILMIRROR_DIR = Path(os.getenv("MAILMIRROR_HOME", str(Path.home() / ".mailmirror")))

# Subdirectories
DATA_DIR = MAILMIRROR_DIR / "data"
LOGS_DIR = MAILMIRROR_DIR / "logs"

# Specific files
DATABASE_PATH = DATA_DIR / "mailmirror.db"
CONFIG_PATH = MAILMIRROR_DIR / "config.json"
