"""
Error handling and logging module.

Provides centralized error logging with file persistence, retry
classification, and the exceptions raised by the schedule source.
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from config import LOGS_DIR

# ============================================================================
# EXCEPTIONS
# ============================================================================

class FetchError(Exception):
    """Raised when schedule/game data could not be fetched after all retries"""


class SnapshotError(FetchError):
    """Raised when a game snapshot does not have the expected schema

    Treated exactly like a failed fetch by callers: no state is applied.
    """


# ============================================================================
# ERROR LOGGING
# ============================================================================

# 5MB per file, 5 backups
error_logger = logging.getLogger('gameday_errors')
error_logger.setLevel(logging.ERROR)

if not error_logger.handlers:
    error_handler = RotatingFileHandler(
        os.path.join(LOGS_DIR, "gameday_errors.log"),
        maxBytes=5*1024*1024,
        backupCount=5,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    error_logger.addHandler(error_handler)


def log_error(error: Exception, context: str = None, extra_info: dict = None):
    """Write an error with its traceback to the rotating error log and echo it

    Args:
        error: The exception that occurred
        context: What the bot was doing, e.g. "Polling game"
        extra_info: Key-value pairs appended to the line (game_pk, guild, ...)
    """
    try:
        message = f"{type(error).__name__}: {error}"
        if context:
            message = f"[{context}] {message}"
        if extra_info:
            message += " | " + " | ".join(f"{k}={v}" for k, v in extra_info.items())

        error_logger.error(message, exc_info=error)
        print(f"📝 {message}")
    except Exception as log_e:
        print(f"⚠️ Failed to log error: {log_e}")


# Substrings of transient failures from aiohttp and the stats API
RETRYABLE_KEYWORDS = (
    "timeout", "timed out",
    "cannot connect", "connection reset", "connection aborted", "server disconnected",
    "name resolution", "temporary failure",
    "status 429", "status 500", "status 502", "status 503", "status 504",
    "service unavailable", "bad gateway",
)


def is_retryable_error(e: Exception) -> bool:
    """True if the error looks like a network hiccup or a transient server status"""
    error_str = str(e).lower()
    return any(keyword in error_str for keyword in RETRYABLE_KEYWORDS)
