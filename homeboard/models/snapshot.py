"""The assembled dashboard snapshot handed to the renderer."""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from homeboard.models.records import (
    CalendarEvent,
    ForecastDay,
    Headline,
    HourlyForecast,
    MarketQuote,
    MoonInfo,
    SunTimes,
    WeatherLocation,
)
from homeboard.models.status import SourceStatus


class FieldOrigin(str, enum.Enum):
    """Which fallback tier produced a snapshot field."""

    API = "api"
    CACHE = "cache"
    STALE_CACHE = "stale_cache"
    STATIC_FALLBACK = "static_fallback"
    ABSENT = "absent"
    DISABLED = "disabled"


class RequestContext(BaseModel):
    """Per-request hints. Never persisted."""

    base_url: str = ""
    timezone: Optional[str] = None


class Units(BaseModel):
    system: str
    temperature: str
    wind_speed: str
    precipitation: str
    pressure: str


METRIC_UNITS = Units(system="metric", temperature="°C", wind_speed="km/h", precipitation="mm", pressure="hPa")
US_UNITS = Units(system="us", temperature="°F", wind_speed="mph", precipitation="in", pressure="inHg")


class Wind(BaseModel):
    speed: Optional[float] = None
    direction: str = "N"


class CurrentConditions(BaseModel):
    temp: float
    feels_like: float
    humidity: int = 0
    pressure: Optional[float] = None
    weather_icon: str = "sunny"
    description: str = "Clear"
    wind: Wind = Field(default_factory=Wind)


class PrecipitationSummary(BaseModel):
    last_24h: Optional[float] = None
    week_total: Optional[float] = None
    month_total: Optional[float] = None
    year_total: Optional[float] = None
    units: str = "mm"


class DashboardSnapshot(BaseModel):
    """One coherent view over every source, built fresh per request."""

    model_config = ConfigDict(frozen=True)

    generated_at: str
    date: str
    timezone: str
    units: Units
    current: CurrentConditions
    locations: list[WeatherLocation]
    forecast: list[ForecastDay]
    hourly_forecast: list[HourlyForecast]
    sun: SunTimes
    moon: MoonInfo
    precipitation: PrecipitationSummary
    temp_comparison: Optional[str] = None
    calendar_events: list[CalendarEvent] = Field(default_factory=list)
    headlines: list[Headline] = Field(default_factory=list)
    markets: list[MarketQuote] = Field(default_factory=list)
    clothing_suggestion: str = ""
    daily_summary: str = ""
    origins: dict[str, FieldOrigin] = Field(default_factory=dict)
    statuses: dict[str, SourceStatus] = Field(default_factory=dict)
