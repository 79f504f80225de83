"""
Time utilities for the Coze client.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware, Python 3.12+ compatible)."""
    return datetime.now(timezone.utc)


def epoch_seconds() -> int:
    """Current UTC time as whole Unix seconds."""
    return int(utcnow().timestamp())
