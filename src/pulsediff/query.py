"""Time window parsing for activity and usage reads."""

import re
from datetime import datetime, timedelta, timezone

RELATIVE_TIME_PATTERN = re.compile(r"^(\d+)(m|h|d|w)$")

TIME_MULTIPLIERS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def parse_since(since: str, now: datetime | None = None) -> str:
    """Convert a relative or absolute time string to a UTC ISO timestamp.

    Accepts:
        "30m", "24h", "7d", "2w" relative to now
        "2026-02-20" date (assumes start of day UTC)
        "2026-02-20T14:00:00" ISO timestamp, naive values taken as UTC

    Raises ValueError for anything else.
    """
    now = now or datetime.now(timezone.utc)
    text = since.strip()
    match = RELATIVE_TIME_PATTERN.match(text)
    if match:
        amount = int(match.group(1))
        unit = match.group(2)
        dt = now - (TIME_MULTIPLIERS[unit] * amount)
        return dt.astimezone(timezone.utc).isoformat()

    try:
        dt = parse_timestamp(text)
    except ValueError:
        raise ValueError(
            f"Invalid time filter: {since!r}. Use 30m, 24h, 7d, 2w or an ISO date."
        ) from None
    return dt.isoformat()


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO timestamp (``Z`` suffix allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif not isinstance(value, str):
        raise ValueError(f"Not a timestamp: {value!r}")
    else:
        # Handle both +00:00 and Z suffixes
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
