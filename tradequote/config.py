"""
Runtime configuration read from environment variables.

Variables:
    TRADEQUOTE_DB: SQLite database path (default: data/tradequote.db)
    TRADEQUOTE_LOG_LEVEL: Log level (default: INFO)
    TRADEQUOTE_LOG_DIR: Directory for log files (default: logs)
    TRADEQUOTE_LOG_FILE: Set to 0 to disable the file log handler
    TRADEQUOTE_PAGE_SIZE: Default page size for job listings (default: 10)
"""

import os
from pathlib import Path

DEFAULT_DB_PATH = "data/tradequote.db"
DEFAULT_PAGE_SIZE = 10


def database_path() -> Path:
    return Path(os.getenv("TRADEQUOTE_DB", DEFAULT_DB_PATH))


def log_level() -> str:
    return os.getenv("TRADEQUOTE_LOG_LEVEL", "INFO")


def log_dir() -> Path:
    return Path(os.getenv("TRADEQUOTE_LOG_DIR", "logs"))


def file_logging_enabled() -> bool:
    return os.getenv("TRADEQUOTE_LOG_FILE", "1").strip().lower() not in ("0", "false", "no", "off")


def page_size() -> int:
    try:
        return max(1, int(os.getenv("TRADEQUOTE_PAGE_SIZE", DEFAULT_PAGE_SIZE)))
    except ValueError:
        return DEFAULT_PAGE_SIZE
