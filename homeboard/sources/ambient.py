"""Ambient Weather personal station source. Hyper-local current conditions, optional."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from homeboard.models.records import AmbientReading, PrecipitationTotals
from homeboard.models.snapshot import RequestContext
from homeboard.sources.errors import ConfigError, FetchError
from homeboard.sources.http import HttpSource
from homeboard.store.auth import AuthStore
from homeboard.weather_utils import wind_direction

logger = logging.getLogger("homeboard.sources.ambient")


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


class AmbientSource(HttpSource[AmbientReading, RequestContext]):
    """Reads the latest observation from the first (or configured) station.

    Values stay imperial as reported by the station; the aggregator converts.
    """

    name = "AmbientWeather"
    cache_key = "ambient"
    record_type = AmbientReading
    ttl_setting = "ambient_cache_minutes"
    default_retry_attempts = 2
    default_retry_cooldown = 1.0

    BASE_URL = "https://rt.ambientweather.net/v1"

    def __init__(self, *args: Any, auth: AuthStore | None = None, **options: Any) -> None:
        super().__init__(*args, **options)
        self.auth = auth

    def is_enabled(self) -> bool:
        return bool(self.settings.ambient_application_key and self.settings.ambient_api_key)

    def cache_signature(self, config: RequestContext) -> str | None:
        return self.settings.ambient_device_mac or None

    def _params(self, **extra: Any) -> dict[str, Any]:
        return {
            "applicationKey": self.settings.ambient_application_key,
            "apiKey": self.settings.ambient_api_key,
            **extra,
        }

    async def fetch_raw(self, config: RequestContext) -> dict[str, Any]:
        if not self.is_enabled():
            raise ConfigError("AMBIENT_APPLICATION_KEY and AMBIENT_API_KEY required")

        async with self.client() as client:
            mac = await self._device_mac(client)
            resp = await client.get(f"{self.BASE_URL}/devices/{mac}", params=self._params(limit=1))
            resp.raise_for_status()
            rows = resp.json() or []

        if not rows:
            raise FetchError("No current data available from Ambient Weather device")
        return rows[0]

    async def _device_mac(self, client: httpx.AsyncClient) -> str:
        """Configured MAC, then the stored one, then the first device on the account."""
        if self.settings.ambient_device_mac:
            return self.settings.ambient_device_mac

        stored = self.auth.ambient_device_mac() if self.auth else None
        if stored:
            return stored

        logger.info("[AmbientWeather] Fetching device list...", extra={"source": self.cache_key})
        resp = await client.get(f"{self.BASE_URL}/devices", params=self._params())
        resp.raise_for_status()
        devices = resp.json() or []
        if not devices:
            raise FetchError("No Ambient Weather devices found")

        mac = devices[0]["macAddress"]
        if self.auth:
            self.auth.store_ambient_device_mac(mac)

        # one request per second on the free tier
        await self.sleep(1.0)
        return mac

    def transform(self, raw: dict[str, Any], config: RequestContext) -> AmbientReading:
        if "tempf" not in raw:
            raise ValueError("Station payload has no tempf reading")

        temp_f = _number(raw.get("tempf"))
        feels_like_f = _number(raw.get("feelsLike", raw.get("feelslikef")), temp_f)
        pressure = raw.get("baromrelin", raw.get("baromabsin"))
        winddir = _number(raw.get("winddir"))

        observed_at = None
        if raw.get("dateutc"):
            observed_at = datetime.fromtimestamp(_number(raw["dateutc"]) / 1000, UTC).isoformat()

        return AmbientReading(
            temp_f=round(temp_f, 1),
            feels_like_f=round(feels_like_f, 1),
            humidity=int(round(_number(raw.get("humidity")))),
            pressure_inhg=round(_number(pressure), 2) if pressure is not None else None,
            wind_speed_mph=round(_number(raw.get("windspeedmph")), 1),
            wind_dir=winddir,
            wind_direction=wind_direction(winddir),
            solar_radiation=_number(raw.get("solarradiation")),
            precipitation=PrecipitationTotals(
                last_24h=_number(raw.get("dailyrainin")),
                week_total=_number(raw.get("weeklyrainin")),
                month_total=_number(raw.get("monthlyrainin")),
                year_total=_number(raw.get("yearlyrainin")),
                unit="in",
            ),
            observed_at=observed_at,
        )
