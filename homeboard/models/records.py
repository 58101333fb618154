"""Normalised records produced by each source's ``transform`` and stored in the cache."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


# ── Weather (always metric: °C, km/h, hPa) ──────────────────


class ForecastDay(BaseModel):
    date: str
    day: str
    high: float
    low: float
    icon: str
    condition: str = ""
    rain_chance: int = 0


class HourlyForecast(BaseModel):
    time: str
    temp: Optional[float] = None
    condition: str = ""
    icon: str = "sunny"
    rain_chance: int = 0
    wind_speed: Optional[float] = None


class WeatherLocation(BaseModel):
    name: str
    region: str = ""
    query: str
    current_temp: float
    feels_like: float
    high: float
    low: float
    icon: str
    condition: str
    rain_chance: int = 0
    humidity: int = 0
    pressure: float = 1013.0
    wind_speed: float = 0.0
    wind_dir: float = 0.0
    uv_index: float = 0.0
    visibility: float = 0.0
    cloud_cover: float = 0.0
    forecast: list[ForecastDay] = Field(default_factory=list)


class SunTimes(BaseModel):
    sunrise: str = "--:--"
    sunset: str = "--:--"


class MoonInfo(BaseModel):
    phase: str = "unknown"
    illumination: Optional[float] = None


class PrecipitationTotals(BaseModel):
    """Raw precipitation amounts exactly as reported, with the upstream unit label."""

    last_24h: Optional[float] = None
    week_total: Optional[float] = None
    month_total: Optional[float] = None
    year_total: Optional[float] = None
    unit: Optional[str] = None


class WeatherReport(BaseModel):
    locations: list[WeatherLocation]
    forecast: list[ForecastDay] = Field(default_factory=list)
    hourly: list[HourlyForecast] = Field(default_factory=list)
    timezone: str = "UTC"
    sun: SunTimes = Field(default_factory=SunTimes)
    moon: MoonInfo = Field(default_factory=MoonInfo)
    precipitation: PrecipitationTotals = Field(default_factory=PrecipitationTotals)

    @property
    def main(self) -> WeatherLocation:
        return self.locations[0]


# ── Personal weather station (imperial, as reported) ────────


class AmbientReading(BaseModel):
    temp_f: float
    feels_like_f: float
    humidity: int = 0
    pressure_inhg: Optional[float] = None
    wind_speed_mph: float = 0.0
    wind_dir: float = 0.0
    wind_direction: str = "N"
    solar_radiation: float = 0.0
    precipitation: PrecipitationTotals = Field(default_factory=PrecipitationTotals)
    observed_at: Optional[str] = None


# ── Calendar ────────────────────────────────────────────────


class CalendarEvent(BaseModel):
    title: str
    time: str
    start: str


# ── News ────────────────────────────────────────────────────


class Headline(BaseModel):
    title: str
    source: str = ""
    url: str = ""
    category: str = ""
    published_at: Optional[str] = None


class NewsDigest(BaseModel):
    headlines: list[Headline] = Field(default_factory=list)


# ── Markets ─────────────────────────────────────────────────


class MarketQuote(BaseModel):
    symbol: str
    name: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    currency: str = "USD"


class MarketsData(BaseModel):
    quotes: list[MarketQuote] = Field(default_factory=list)
    as_of: Optional[str] = None


# ── LLM insights ────────────────────────────────────────────


class InsightsUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    prompt: str = ""


class Insights(BaseModel):
    clothing_suggestion: str = ""
    daily_summary: str
    meta: Optional[InsightsUsage] = None
