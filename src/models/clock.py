"""Naive-UTC clock helpers shared by models and services."""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utctoday() -> date:
    """Current UTC date."""
    return utcnow().date()
