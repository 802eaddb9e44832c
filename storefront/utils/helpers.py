"""
Helper utilities
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_email(value: str) -> str:
    """Emails are compared case- and whitespace-insensitively"""
    return value.strip().lower()


def isoformat_or_none(value):
    return value.isoformat() if value else None
