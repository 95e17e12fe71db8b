"""Utility helpers for TownConnect."""

from __future__ import annotations

from datetime import UTC, datetime
import re
import unicodedata

_handle_invalid = re.compile(r"[^a-z0-9_.]+")


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def normalize_handle(value: str | None) -> str:
    """Return the canonical form of a username handle."""
    value = (
        unicodedata.normalize("NFKD", value or "")
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    value = value.strip().lower().lstrip("@")
    value = _handle_invalid.sub("", value)
    return value


def contains_text(haystack: str | None, needle: str) -> bool:
    """Case-insensitive substring test used by the search helpers."""
    return needle.casefold() in (haystack or "").casefold()


_TIME_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


def humanize_time(value: datetime | None, *, now: datetime | None = None) -> str:
    """Return a friendly string such as 'in 2 weeks' or '3 hours ago'.

    Weeks are only used for whole weeks, so 11 days reads as '11 days'.
    """
    if not value:
        return ""
    delta = (value - (now or utcnow())).total_seconds()
    seconds = abs(delta)

    for name, step in _TIME_UNITS:
        amount = int(seconds // step)
        if amount < 1:
            continue
        if name == "week" and seconds % step >= 24 * 3600:
            continue
        break
    else:
        return "moments ago" if delta < 0 else "in moments"

    label = name if amount == 1 else f"{name}s"
    return f"{amount} {label} ago" if delta < 0 else f"in {amount} {label}"


def duration_between(start: datetime | None, end: datetime | None) -> str:
    """Return a short "2h 30m" style duration string."""
    if not start or not end:
        return ""
    total = max(int((end - start).total_seconds()), 0)
    if total < 60:
        return "less than 1 minute"
    hours, minutes = divmod(total // 60, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    return " ".join(parts)
