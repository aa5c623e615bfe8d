"""
Utility functions for Moltr API.

Provides identifier generation and time helpers.
"""

import secrets
import time
from datetime import datetime, timezone


def now_micros() -> int:
    """Get current Unix timestamp in microseconds."""
    return time.time_ns() // 1000


def utc_iso8601(ts_micros: int) -> str:
    """Convert a microsecond Unix timestamp to an ISO-8601 UTC string."""
    seconds, micros = divmod(ts_micros, 1_000_000)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=micros)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def generate_id(length: int = 16) -> str:
    """Generate a cryptographically secure random ID."""
    return secrets.token_hex(length)
