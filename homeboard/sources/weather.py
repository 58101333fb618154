"""Google Weather source: geocodes each configured location and pulls current, daily and hourly data."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, tzinfo
from typing import Any

import httpx

from homeboard.models.records import (
    ForecastDay,
    HourlyForecast,
    MoonInfo,
    PrecipitationTotals,
    SunTimes,
    WeatherLocation,
    WeatherReport,
)
from homeboard.models.snapshot import RequestContext
from homeboard.sources.errors import ConfigError, FetchError, TransformError
from homeboard.sources.http import HttpSource
from homeboard.utils.time import parse_iso, resolve_zone
from homeboard.weather_utils import f_to_c, map_icon_and_description, mph_to_kmh

logger = logging.getLogger("homeboard.sources.weather")


def _temperature(node: dict | None) -> float:
    node = node or {}
    degrees = float(node.get("degrees") or 0)
    if node.get("unit") == "FAHRENHEIT":
        return f_to_c(degrees)
    return degrees


def _speed(wind: dict | None) -> float:
    speed = (wind or {}).get("speed") or {}
    value = float(speed.get("value") or 0)
    if speed.get("unit") == "MILES_PER_HOUR":
        return mph_to_kmh(value)
    return value


def _condition_text(condition: dict | None) -> str:
    condition = condition or {}
    return str((condition.get("description") or {}).get("text") or condition.get("type") or "unknown")


def _rain_chance(precipitation: dict | None) -> int:
    return int(((precipitation or {}).get("probability") or {}).get("percent") or 0)


def _clock(value: str | None, zone: tzinfo) -> str:
    moment = parse_iso(value)
    if moment is None:
        return "--:--"
    return moment.astimezone(zone).strftime("%I:%M %p")


class WeatherSource(HttpSource[WeatherReport, RequestContext]):
    """Required source. Every other field of the snapshot hangs off this record."""

    name = "Google Weather"
    cache_key = "weather"
    record_type = WeatherReport
    ttl_setting = "weather_cache_minutes"
    default_retry_attempts = 3
    default_retry_cooldown = 1.0

    GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
    BASE_URL = "https://weather.googleapis.com/v1"

    def is_enabled(self) -> bool:
        return bool(self.settings.google_maps_api_key and self.settings.locations_list)

    def cache_signature(self, config: RequestContext) -> str:
        return json.dumps({"locations": self.settings.locations_list})

    async def fetch_raw(self, config: RequestContext) -> list[dict[str, Any]]:
        api_key = self.settings.google_maps_api_key
        if not api_key:
            raise ConfigError("GOOGLE_MAPS_API_KEY not configured")
        locations = self.settings.locations_list
        if not locations:
            raise ConfigError("No locations configured. Set MAIN_LOCATION.")

        async with self.client() as client:
            return list(await asyncio.gather(*(self._fetch_location(client, api_key, loc) for loc in locations)))

    async def _geocode(self, client: httpx.AsyncClient, api_key: str, query: str) -> dict[str, Any]:
        resp = await client.get(self.GEOCODE_URL, params={"address": query, "key": api_key})
        resp.raise_for_status()
        body = resp.json()
        results = body.get("results") or []
        if body.get("status") != "OK" or not results:
            raise FetchError(f"Could not resolve location: {query} ({body.get('status', 'no status')})")
        result = results[0]
        return {
            "lat": result["geometry"]["location"]["lat"],
            "lng": result["geometry"]["location"]["lng"],
            "formatted_address": result.get("formatted_address", ""),
        }

    async def _fetch_location(self, client: httpx.AsyncClient, api_key: str, query: str) -> dict[str, Any]:
        geo = await self._geocode(client, api_key, query)
        params = {
            "key": api_key,
            "location.latitude": geo["lat"],
            "location.longitude": geo["lng"],
        }
        current, daily, hourly = await asyncio.gather(
            client.get(f"{self.BASE_URL}/currentConditions:lookup", params=params),
            client.get(f"{self.BASE_URL}/forecast/days:lookup", params={**params, "days": 7}),
            client.get(f"{self.BASE_URL}/forecast/hours:lookup", params={**params, "hours": 24}),
        )
        for resp in (current, daily, hourly):
            resp.raise_for_status()

        return {
            "query": query,
            "resolved_address": geo["formatted_address"],
            "current": current.json(),
            "daily": daily.json(),
            "hourly": hourly.json(),
        }

    def transform(self, raw: list[dict[str, Any]], config: RequestContext) -> WeatherReport:
        if not raw:
            raise TransformError("No weather data available")

        locations = [self._map_location(item) for item in raw]
        main = raw[0]
        timezone_id = (main["current"].get("timeZone") or {}).get("id") or "UTC"
        zone = resolve_zone(timezone_id)

        hours = (main.get("hourly") or {}).get("forecastHours") or []
        hourly = [self._map_hour(hour, zone) for hour in hours[:24]]

        days = (main["daily"].get("forecastDays") or [{}])
        today = days[0] if days else {}
        sun_events = today.get("sunEvents") or {}
        moon_events = today.get("moonEvents") or {}

        qpf = ((main["current"].get("precipitation") or {}).get("qpf")) or {}
        amount = qpf.get("quantity", qpf.get("value"))

        return WeatherReport(
            locations=locations,
            forecast=locations[0].forecast,
            hourly=hourly,
            timezone=timezone_id,
            sun=SunTimes(
                sunrise=_clock(sun_events.get("sunriseTime"), zone),
                sunset=_clock(sun_events.get("sunsetTime"), zone),
            ),
            moon=MoonInfo(phase=str(moon_events.get("moonPhase") or "unknown").lower()),
            precipitation=PrecipitationTotals(
                last_24h=float(amount) if amount is not None else None,
                unit=qpf.get("unit"),
            ),
        )

    def _map_location(self, item: dict[str, Any]) -> WeatherLocation:
        current = item.get("current")
        daily = item.get("daily")
        if not current or not daily:
            raise TransformError(f"Incomplete weather data for {item.get('query')}")

        condition_text = _condition_text(current.get("weatherCondition"))
        icon, description = map_icon_and_description(condition_text)
        forecast = [self._map_day(day) for day in daily.get("forecastDays") or []]
        pressure = current.get("airPressure") or {}
        visibility = current.get("visibility") or {}
        resolved = item.get("resolved_address") or ""

        return WeatherLocation(
            name=resolved.split(",")[0] if resolved else item["query"],
            region=resolved,
            query=item["query"],
            current_temp=round(_temperature(current.get("temperature")), 1),
            feels_like=round(_temperature(current.get("feelsLikeTemperature")), 1),
            high=forecast[0].high if forecast else 0.0,
            low=forecast[0].low if forecast else 0.0,
            icon=icon,
            condition=description,
            rain_chance=_rain_chance(current.get("precipitation")),
            humidity=int(current.get("relativeHumidity") or 0),
            pressure=float(pressure.get("meanSeaLevelMillibars") or pressure.get("value") or 1013),
            wind_speed=round(_speed(current.get("wind")), 1),
            wind_dir=float(((current.get("wind") or {}).get("direction") or {}).get("degrees") or 0),
            uv_index=float(current.get("uvIndex") or 0),
            visibility=float(visibility.get("distance") or visibility.get("value") or 0),
            cloud_cover=float(current.get("cloudCover") or 0),
            forecast=forecast,
        )

    @staticmethod
    def _map_day(day: dict[str, Any]) -> ForecastDay:
        display = day["displayDate"]
        date = datetime(display["year"], display["month"], display["day"])
        daytime = day.get("daytimeForecast") or {}
        condition_text = _condition_text(daytime.get("weatherCondition"))
        icon, _ = map_icon_and_description(condition_text)
        return ForecastDay(
            date=date.strftime("%Y-%m-%d"),
            day=date.strftime("%a"),
            high=round(_temperature(day.get("maxTemperature")), 1),
            low=round(_temperature(day.get("minTemperature")), 1),
            icon=icon,
            condition=condition_text,
            rain_chance=_rain_chance(daytime.get("precipitation")),
        )

    @staticmethod
    def _map_hour(hour: dict[str, Any], zone: tzinfo) -> HourlyForecast:
        display = hour["displayDateTime"]
        moment = datetime(display["year"], display["month"], display["day"], display.get("hours", 0), tzinfo=zone)
        condition = hour.get("weatherCondition") or {}
        text = str((condition.get("description") or {}).get("text") or condition.get("type") or "")
        icon, _ = map_icon_and_description(text)
        return HourlyForecast(
            time=moment.isoformat(),
            temp=round(_temperature(hour.get("temperature")), 1),
            condition=text,
            icon=icon,
            rain_chance=_rain_chance(hour.get("precipitation")),
            wind_speed=round(_speed(hour.get("wind")), 1),
        )
