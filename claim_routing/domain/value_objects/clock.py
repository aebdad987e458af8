"""Timestamps — naive UTC throughout, matching the database columns."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
