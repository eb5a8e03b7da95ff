"""Datetime helpers for Rapport payloads and chat labels."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def to_utc_iso(value: Optional[datetime]) -> Optional[str]:
    """Return an ISO 8601 string in UTC with trailing ``Z``.

    ``None`` values are passed through unchanged. Naive datetimes are assumed to
    be in UTC already so they are annotated with :class:`datetime.timezone.utc`.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def format_send_date(value: datetime, now: Optional[datetime] = None) -> str:
    """Render a message timestamp relative to ``now``.

    Same day shows only the time, same year adds weekday, month and day, and
    anything older carries the full date.
    """

    now = now or datetime.utcnow()
    if value.date() == now.date():
        return value.strftime("%I:%M %p")
    if value.year == now.year:
        return f"{value.strftime('%A %b')} {value.day}, {value.strftime('%I:%M %p')}"
    return f"{value.strftime('%A %b')} {value.day}, {value.year} {value.strftime('%I:%M %p')}"
