"""Utility helpers shared across apps."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from django.utils import timezone

from apps.common.errors import InvalidRequest


def now_utc() -> datetime:
    """Return timezone-aware UTC now."""
    return timezone.now()


def expires_at(ttl_seconds: int, *, now: datetime | None = None) -> datetime:
    """Return the instant ``ttl_seconds`` after ``now`` (defaults to the current time)."""
    return (now or now_utc()) + timedelta(seconds=ttl_seconds)


def is_expired(expiry: datetime, *, now: datetime | None = None) -> bool:
    return expiry <= (now or now_utc())


def format_hhmm(value) -> str:
    """Render a ``time`` as HH:MM."""
    return f"{value.hour:02d}:{value.minute:02d}"


def parse_date(raw) -> date:
    """Parse ``YYYY-MM-DD``; anything else is an invalid request."""
    try:
        return date.fromisoformat(str(raw or "").strip()[:10])
    except ValueError:
        raise InvalidRequest()


def parse_hhmm(raw) -> time:
    try:
        return datetime.strptime(str(raw or "").strip(), "%H:%M").time()
    except ValueError:
        raise InvalidRequest()
