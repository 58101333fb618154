"""Google Calendar source: upcoming timed events across the selected calendars."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx

from homeboard.models.records import CalendarEvent
from homeboard.models.snapshot import RequestContext
from homeboard.sources.errors import ConfigError, FetchError
from homeboard.sources.http import HttpSource
from homeboard.store.auth import AuthStore
from homeboard.utils.time import parse_iso, resolve_zone

logger = logging.getLogger("homeboard.sources.calendar")

DEFAULT_TIMEZONE = "America/Los_Angeles"


def clock_label(moment: datetime) -> str:
    """``3:00 pm`` style time."""
    suffix = "am" if moment.hour < 12 else "pm"
    return f"{moment.hour % 12 or 12}:{moment.minute:02d} {suffix}"


def relative_label(start: datetime, now: datetime, timezone: str) -> str:
    """Human label relative to ``now``: Today / Tomorrow / In N days / weekday."""
    zone = resolve_zone(timezone, DEFAULT_TIMEZONE)
    target = start.astimezone(zone)
    local_now = now.astimezone(zone)
    time_str = clock_label(target)

    if target.date() == local_now.date():
        return f"Today at {time_str}"
    if target.date() == local_now.date() + timedelta(days=1):
        return f"Tomorrow at {time_str}"

    diff_days = round((target - local_now).total_seconds() / 86400)
    if 0 < diff_days <= 7:
        return f"In {diff_days} days at {time_str}"
    return f"{target.strftime('%A')} at {time_str}"


class CalendarSource(HttpSource[list[CalendarEvent], RequestContext]):
    """Reads events with the stored OAuth access token.

    Token exchange and refresh happen elsewhere; a missing token disables the source.
    """

    name = "Calendar"
    cache_key = "calendar"
    record_type = list[CalendarEvent]
    ttl_setting = "calendar_cache_minutes"
    default_retry_attempts = 2
    default_retry_cooldown = 1.0

    BASE_URL = "https://www.googleapis.com/calendar/v3"

    def __init__(self, *args: Any, auth: AuthStore | None = None, **options: Any) -> None:
        super().__init__(*args, **options)
        self.auth = auth

    def is_enabled(self) -> bool:
        has_tokens = self.auth is not None and self.auth.google_tokens() is not None
        return bool(self.settings.google_client_id and self.settings.google_client_secret and has_tokens)

    def cache_signature(self, config: RequestContext) -> str:
        calendars = self.auth.selected_calendars() if self.auth else []
        return json.dumps({"calendars": calendars})

    async def fetch_raw(self, config: RequestContext) -> dict[str, Any]:
        token = self.auth.google_access_token() if self.auth else None
        if not token:
            raise ConfigError("Google not authenticated")
        calendar_ids = self.auth.selected_calendars()
        if not calendar_ids:
            raise ConfigError("No calendars selected")

        timezone = config.timezone or DEFAULT_TIMEZONE
        now = datetime.fromtimestamp(self.clock(), UTC)
        time_max = now + timedelta(days=self.settings.calendar_lookahead_days)

        items: list[dict[str, Any]] = []
        failures: list[str] = []
        async with self.client(headers={"Authorization": f"Bearer {token}"}) as client:
            for cal_id in calendar_ids:
                try:
                    resp = await client.get(
                        f"{self.BASE_URL}/calendars/{quote(cal_id, safe='')}/events",
                        params={
                            "timeMin": now.isoformat(),
                            "timeMax": time_max.isoformat(),
                            "maxResults": 10,
                            "singleEvents": "true",
                            "orderBy": "startTime",
                            "timeZone": timezone,
                        },
                    )
                    resp.raise_for_status()
                    items.extend(resp.json().get("items", []))
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning(f"[Calendar] Failed to fetch events for {cal_id}: {exc}")
                    failures.append(f"{cal_id}: {exc}")

        if len(failures) == len(calendar_ids):
            raise FetchError(f"All calendars failed: {'; '.join(failures)}")

        return {"items": items, "timezone": timezone, "now": now.isoformat()}

    def transform(self, raw: dict[str, Any], config: RequestContext) -> list[CalendarEvent]:
        now = parse_iso(raw["now"])
        if now is None:
            raise ValueError(f"Bad reference time {raw['now']!r}")
        timezone = raw.get("timezone") or DEFAULT_TIMEZONE
        horizon = now + timedelta(days=self.settings.calendar_lookahead_days)

        upcoming: list[tuple[datetime, str, str]] = []
        for event in raw.get("items", []):
            start = event.get("start") or {}
            if start.get("date") and not start.get("dateTime"):
                continue  # all-day
            start_at = parse_iso(start.get("dateTime"))
            if start_at is None or not now <= start_at <= horizon:
                continue
            upcoming.append((start_at, event.get("summary") or "Untitled", start["dateTime"]))

        upcoming.sort(key=lambda item: item[0])
        return [
            CalendarEvent(title=title, time=relative_label(start_at, now, timezone), start=start_raw)
            for start_at, title, start_raw in upcoming[: self.settings.calendar_max_events]
        ]
