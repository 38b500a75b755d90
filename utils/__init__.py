"""Utils package - Utility functions and helpers

Message formatting lives in utils.formatting; it depends on models and is
imported directly.
"""

from .error_handling import log_error, is_retryable_error, FetchError, SnapshotError
from .timestamp import parse_nhl_date, to_local, format_local, now_utc

__all__ = [
    'log_error',
    'is_retryable_error',
    'FetchError',
    'SnapshotError',
    'parse_nhl_date',
    'to_local',
    'format_local',
    'now_utc',
]
