"""Deterministic substitutes used when an optional source has nothing to offer.

Everything here works in metric (°C, km/h, hPa); display conversion happens later.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from homeboard.models.records import AmbientReading, ForecastDay, HourlyForecast, PrecipitationTotals, WeatherLocation
from homeboard.models.snapshot import CurrentConditions, PrecipitationSummary, Wind
from homeboard.sources.errors import UnitAmbiguousError
from homeboard.utils.time import time_of_day
from homeboard.weather_utils import convert_precip, f_to_c, inhg_to_hpa, mph_to_kmh, wind_direction

logger = logging.getLogger("homeboard.aggregator.fallback")


@dataclass(frozen=True)
class Thresholds:
    """Temperature bands (°C) and percentages that drive the static description."""

    cold_morning: float = 10
    warm_morning: float = 21
    warm_afternoon: float = 21
    hot_afternoon: float = 29
    cool_afternoon: float = 15
    cool_evening: float = 15
    cold_night: float = 10
    warm_night: float = 21
    hot_night: float = 29
    extreme_heat: float = 38
    big_swing: float = 8
    large_warmup: float = 7
    large_drop: float = 6
    rain_chance: float = 40


THRESHOLDS = Thresholds()

DEFAULT_TEMP = 20.0
DEFAULT_LOW = 15.0


# ── Current conditions ───────────────────────────────────────


def current_from_weather(location: WeatherLocation) -> CurrentConditions:
    """Current conditions taken straight from the forecast provider."""
    return CurrentConditions(
        temp=location.current_temp,
        feels_like=location.feels_like,
        humidity=location.humidity,
        pressure=location.pressure,
        weather_icon=location.icon or "sunny",
        description=location.condition or "Clear",
        wind=Wind(speed=location.wind_speed, direction=wind_direction(location.wind_dir)),
    )


def current_from_ambient(reading: AmbientReading, location: WeatherLocation) -> CurrentConditions:
    """Station readings for the numbers; sky condition and icon still come from the forecast."""
    return CurrentConditions(
        temp=round(f_to_c(reading.temp_f), 1),
        feels_like=round(f_to_c(reading.feels_like_f), 1),
        humidity=reading.humidity or location.humidity,
        pressure=round(inhg_to_hpa(reading.pressure_inhg)) if reading.pressure_inhg else location.pressure,
        weather_icon=location.icon or "sunny",
        description=location.condition or "Clear",
        wind=Wind(
            speed=round(mph_to_kmh(reading.wind_speed_mph), 1),
            direction=reading.wind_direction or wind_direction(location.wind_dir),
        ),
    )


# ── Precipitation ────────────────────────────────────────────


def precipitation_summary(totals: PrecipitationTotals, target: str) -> PrecipitationSummary:
    """Convert raw totals to ``target`` units.

    A period whose unit label cannot be resolved is logged and left empty rather
    than guessed.
    """
    values: dict[str, Optional[float]] = {}
    for period in ("last_24h", "week_total", "month_total", "year_total"):
        try:
            value = convert_precip(getattr(totals, period), totals.unit, target, period)
        except UnitAmbiguousError as exc:
            logger.warning(f"Dropping precipitation {period}: {exc}", extra={"field": period})
            value = None
        values[period] = round(value, 2) if value is not None else None
    return PrecipitationSummary(units=target, **values)


# ── Static daily summary ─────────────────────────────────────


def _morning(current: float, high: float, condition: str, rainy: bool, swing: bool, temp_range: float, t: Thresholds) -> str:
    is_cold = current < t.cold_morning
    is_warm = current >= t.warm_morning
    will_warm_up = high - current >= t.large_warmup

    if rainy:
        if is_cold:
            return "Chilly and rainy morning, staying wet and cool throughout the day"
        return "Rainy start continuing through the day, stay dry and cozy inside"
    if swing and will_warm_up:
        if re.search(r"fog|mist", condition):
            return "Cool and foggy this morning, clearing to warmer skies by afternoon"
        return f"Cool start warming up fast, pleasant {round(temp_range)}° swing by afternoon"
    if is_cold:
        if re.search(r"cloud|overcast", condition):
            return "Chilly and cloudy morning, staying fairly cool throughout the day"
        return "Crisp cool morning, staying on the cooler side all day long"
    if is_warm:
        if high >= t.extreme_heat:
            return "Extreme heat warning today, temperatures soaring to dangerous levels"
        return "Warm start to a beautiful day, staying sunny and pleasant throughout"
    if "cloud" in condition:
        return "Mild and cloudy morning, comfortable temperatures all day long"
    return "Pleasant morning with comfortable temps, nice conditions all day"


def _afternoon(current: float, condition: str, rainy: bool, t: Thresholds) -> str:
    if rainy:
        return "Rainy afternoon continuing into evening, staying wet and overcast"
    if current >= t.hot_afternoon:
        if current >= t.extreme_heat:
            return "Extreme heat alert this afternoon, stay hydrated and keep in the shade"
        return "Hot afternoon continuing, staying warm as we head into the evening"
    if current >= t.warm_afternoon:
        if re.search(r"clear|sunny", condition):
            return "Beautiful sunny afternoon, staying pleasant as the day winds down"
        return "Mild and comfortable afternoon, nice conditions into the evening"
    if current < t.cool_afternoon:
        return "Cool and comfortable afternoon, staying on the cooler side tonight"
    return "Pleasant afternoon temperatures, comfortable conditions into evening"


def _evening(current: float, low: float, condition: str, rainy: bool, t: Thresholds) -> str:
    is_cool = current < t.cool_evening
    if rainy:
        return "Rainy evening ahead, staying wet and cool as the night sets in"
    if current - low >= t.large_drop:
        if is_cool:
            return "Cool evening getting chillier, bundle up as temperatures drop tonight"
        return "Mild now but cooling down, grab a jacket as the evening progresses"
    if is_cool:
        if "clear" in condition:
            return "Cool and clear evening, staying crisp with nice skies through tonight"
        return "Cool evening settling in, staying on the chilly side through the night"
    if "clear" in condition:
        return "Pleasant evening with clear skies, comfortable conditions tonight"
    return "Mild and comfortable evening, nice conditions as the night sets in"


def _night(tomorrow_high: float, tomorrow_low: float, condition: str, rainy: bool, t: Thresholds) -> str:
    will_be_cold = tomorrow_low < t.cold_night
    if rainy:
        if will_be_cold:
            return "Tomorrow rainy and cool, expect wet conditions and chilly temperatures"
        return "Tomorrow bringing rain and clouds, stay dry with umbrella and layers"
    if tomorrow_high >= t.hot_night:
        if tomorrow_high >= t.extreme_heat:
            return "Dangerously hot tomorrow, prepare for extreme heat and stay inside"
        return "Tomorrow heating up nicely, expect warm sunny skies and hot temperatures"
    if tomorrow_high >= t.warm_night:
        if re.search(r"fog|mist", condition):
            return "Tomorrow foggy start clearing out, warming to pleasant afternoon temps"
        return "Tomorrow pleasant and mild, comfortable temperatures throughout the day"
    if will_be_cold:
        if "cloud" in condition:
            return "Tomorrow cool and cloudy, staying on the chilly side all day long"
        return "Tomorrow crisp and cool, bundle up for chilly temperatures ahead"
    return "Tomorrow comfortable and mild, nice conditions throughout the day ahead"


def build_static_description(
    current: CurrentConditions | None,
    forecast: list[ForecastDay],
    hourly: list[HourlyForecast],
    hour: int,
    thresholds: Thresholds = THRESHOLDS,
) -> str:
    """Rule-based daily summary for the local ``hour``, used when no LLM insight is available."""
    period = time_of_day(hour)
    today = forecast[0] if forecast else None
    tomorrow = forecast[1] if len(forecast) > 1 else None

    current_temp = current.temp if current else DEFAULT_TEMP
    high = today.high if today else DEFAULT_TEMP
    low = today.low if today else DEFAULT_LOW
    condition = (current.description if current else "Clear").lower()

    max_rain = max([today.rain_chance if today else 0, *(h.rain_chance for h in hourly[:6])])
    rainy = max_rain > thresholds.rain_chance or bool(re.search(r"rain|shower|drizzle", condition))

    temps = [h.temp if h.temp is not None else DEFAULT_TEMP for h in hourly[:8]]
    temp_range = max(temps) - min(temps) if temps else high - low
    big_swing = temp_range >= thresholds.big_swing

    if period == "morning":
        return _morning(current_temp, high, condition, rainy, big_swing, temp_range, thresholds)
    if period == "afternoon":
        return _afternoon(current_temp, condition, rainy, thresholds)
    if period == "evening":
        return _evening(current_temp, low, condition, rainy, thresholds)
    return _night(
        tomorrow.high if tomorrow else DEFAULT_TEMP,
        tomorrow.low if tomorrow else DEFAULT_LOW,
        condition,
        rainy,
        thresholds,
    )
