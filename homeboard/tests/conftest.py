"""Shared test fixtures for Homeboard tests."""

from __future__ import annotations

import random
from typing import Any, Callable

import httpx
import pytest
from pydantic import BaseModel

from homeboard.config import Settings
from homeboard.observability.metrics import SourceMetrics
from homeboard.sources.base import ResilientSource
from homeboard.store.auth import AuthStore
from homeboard.store.cache import CacheStore
from homeboard.store.state import StateDocument
from homeboard.store.status import SourceStatusRegistry

START = 1_700_000_000.0  # 2023-11-14T22:13:20Z


class FakeClock:
    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class Reading(BaseModel):
    value: int


class ScriptedSource(ResilientSource[Reading, dict]):
    """Source whose ``fetch_raw`` replays a script of payloads and exceptions."""

    name = "Scripted"
    cache_key = "scripted"
    record_type = Reading

    def __init__(self, *args: Any, script: list | None = None, enabled: bool = True, **options: Any) -> None:
        super().__init__(*args, **options)
        self.script = list(script or [])
        self.enabled = enabled
        self.calls = 0

    def is_enabled(self) -> bool:
        return self.enabled

    def cache_signature(self, config: dict) -> str | None:
        return config.get("signature")

    async def fetch_raw(self, config: dict) -> Any:
        self.calls += 1
        step = self.script.pop(0) if self.script else {"value": self.calls}
        if isinstance(step, Exception):
            raise step
        return step

    def transform(self, raw: Any, config: dict) -> Reading:
        return Reading(value=raw["value"])


def isolated_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment and any .env file."""
    blank = {
        "google_maps_api_key": "",
        "main_location": "",
        "extra_locations": "",
        "ambient_application_key": "",
        "ambient_api_key": "",
        "ambient_device_mac": "",
        "google_client_id": "",
        "google_client_secret": "",
        "newsapi_key": "",
        "alpha_vantage_key": "",
        "openai_api_key": "",
        "unit_system": "metric",
        "timezone": "UTC",
    }
    return Settings(_env_file=None, **{**blank, **overrides})


@pytest.fixture
def state(tmp_path):
    return StateDocument(tmp_path / "state.json")


@pytest.fixture
def cache(state):
    return CacheStore(state)


@pytest.fixture
def registry(state):
    return SourceStatusRegistry(state)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def metrics():
    return SourceMetrics()


@pytest.fixture
def source_options(clock, sleeper, metrics):
    """Deterministic clock, sleep, jitter and metrics for any source under test."""
    return {"clock": clock, "sleep": sleeper, "rng": random.Random(7), "metrics": metrics}


@pytest.fixture
def make_source(cache, registry, source_options):
    def factory(**kwargs: Any) -> ScriptedSource:
        options = {"cache_ttl": 600, "retry_attempts": 3, "retry_cooldown": 1.0, **source_options, **kwargs}
        return ScriptedSource(cache, registry, **options)

    return factory


@pytest.fixture
def make_settings():
    return isolated_settings


@pytest.fixture
def auth(tmp_path):
    return AuthStore(StateDocument(tmp_path / "auth.json"))


@pytest.fixture
def make_http_source(cache, registry, source_options):
    """Build an HTTP-backed source whose requests are answered by ``handler``."""

    def factory(source_cls: type, settings: Settings, handler: Callable[[httpx.Request], httpx.Response], **extra: Any):
        transport = httpx.MockTransport(handler)
        return source_cls(cache, registry, settings=settings, transport=transport, **source_options, **extra)

    return factory


# ── Google Weather payloads ─────────────────────────────────

GEOCODE_OK = {
    "status": "OK",
    "results": [{
        "geometry": {"location": {"lat": 39.78, "lng": -89.65}},
        "formatted_address": "Springfield, IL, USA",
    }],
}

CURRENT = {
    "timeZone": {"id": "America/Chicago"},
    "weatherCondition": {"description": {"text": "Partly cloudy"}, "type": "PARTLY_CLOUDY"},
    "temperature": {"degrees": 68, "unit": "FAHRENHEIT"},
    "feelsLikeTemperature": {"degrees": 19.5, "unit": "CELSIUS"},
    "relativeHumidity": 55,
    "airPressure": {"meanSeaLevelMillibars": 1012.5},
    "wind": {"speed": {"value": 10, "unit": "MILES_PER_HOUR"}, "direction": {"degrees": 180}},
    "precipitation": {"probability": {"percent": 20}, "qpf": {"quantity": 0.2, "unit": "INCHES"}},
}

DAILY = {
    "forecastDays": [
        {
            "displayDate": {"year": 2024, "month": 6, "day": 1},
            "maxTemperature": {"degrees": 25},
            "minTemperature": {"degrees": 15},
            "daytimeForecast": {
                "weatherCondition": {"description": {"text": "Sunny"}},
                "precipitation": {"probability": {"percent": 10}},
            },
            "sunEvents": {"sunriseTime": "2024-06-01T10:30:00Z", "sunsetTime": "2024-06-02T01:20:00Z"},
            "moonEvents": {"moonPhase": "WAXING_CRESCENT"},
        },
        {
            "displayDate": {"year": 2024, "month": 6, "day": 2},
            "maxTemperature": {"degrees": 27},
            "minTemperature": {"degrees": 16},
            "daytimeForecast": {"weatherCondition": {"description": {"text": "Light rain"}}},
        },
    ],
}

HOURLY = {
    "forecastHours": [
        {
            "displayDateTime": {"year": 2024, "month": 6, "day": 1, "hours": 14},
            "temperature": {"degrees": 24},
            "weatherCondition": {"description": {"text": "Sunny"}},
            "wind": {"speed": {"value": 12}},
        },
    ],
}


def _weather_handler(geocode=GEOCODE_OK, requests=None, hourly=HOURLY):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.host == "maps.googleapis.com":
            return httpx.Response(200, json=geocode)
        path = request.url.path
        if path.endswith("currentConditions:lookup"):
            return httpx.Response(200, json=CURRENT)
        if path.endswith("days:lookup"):
            return httpx.Response(200, json=DAILY)
        if path.endswith("hours:lookup"):
            return httpx.Response(200, json=hourly)
        return httpx.Response(404)

    return handler


@pytest.fixture
def google_weather():
    """Factory for a handler that answers geocoding and Google Weather lookups."""
    return _weather_handler
