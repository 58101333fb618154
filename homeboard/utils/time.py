"""Time helpers with timezone-aware UTC defaults."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger("homeboard.time")


def utc_now() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(UTC)


def resolve_zone(name: str | None, default: str = "UTC") -> tzinfo:
    """Return a ZoneInfo for ``name``, falling back to ``default`` when unknown."""
    for candidate in (name, default):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {candidate!r}")
    return UTC


def local_date_key(moment: datetime, zone: tzinfo, days_ago: int = 0) -> str:
    """``YYYY-MM-DD`` for ``moment`` in ``zone``, shifted back ``days_ago`` calendar days."""
    local = moment.astimezone(zone).date() - timedelta(days=days_ago)
    return local.isoformat()


def time_of_day(hour: int) -> str:
    """Bucket a local hour into morning / afternoon / evening / night."""
    if 5 <= hour < 11:
        return "morning"
    if 11 <= hour < 16:
        return "afternoon"
    if 16 <= hour < 20:
        return "evening"
    return "night"


_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix and nanosecond fractions allowed)."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(_FRACTION.sub(r"\1", value.replace("Z", "+00:00")))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
