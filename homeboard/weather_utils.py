"""Weather helpers shared by sources and the aggregator: icons, wind, unit conversion."""

from __future__ import annotations

import re
from typing import Optional

from homeboard.sources.errors import UnitAmbiguousError

WIND_DIRECTIONS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]

# Checked in order; partly cloudy must win over plain cloudy.
_ICON_RULES: list[tuple[re.Pattern[str], str, str]] = [
    (re.compile(r"thunder|storm"), "stormy", "Stormy"),
    (re.compile(r"snow|sleet|blizzard"), "snow", "Snow"),
    (re.compile(r"rain|drizzle|showers"), "rain", "Rain"),
    (re.compile(r"fog|mist|haze|smoke"), "fog", "Fog"),
    (re.compile(r"(partly|mostly)\s*(cloudy|sunny)"), "partly_cloudy", "Partly Cloudy"),
    (re.compile(r"overcast|cloud"), "cloudy", "Cloudy"),
    (re.compile(r"clear|sunny|fair"), "sunny", "Clear"),
]

_INCH_LABELS = {"in", "inch", "inches"}
_MM_LABELS = {"mm", "millimeter", "millimeters", "millimetre", "millimetres"}

MM_PER_INCH = 25.4
KMH_PER_MPH = 1.60934
HPA_PER_INHG = 33.8638866667


def map_icon_and_description(condition: str | None) -> tuple[str, str]:
    """Map free-form condition text to ``(icon, description)``. Unknown text is sunny."""
    text = (condition or "").lower()
    for pattern, icon, default_description in _ICON_RULES:
        if pattern.search(text):
            return icon, condition or default_description
    return "sunny", condition or "Clear"


def wind_direction(degrees: float | None) -> str:
    """16-point compass label for a bearing in degrees."""
    index = int((degrees or 0) % 360 / 22.5 + 0.5) % 16
    return WIND_DIRECTIONS[index]


def f_to_c(value: float) -> float:
    return (value - 32) * 5 / 9


def c_to_f(value: float) -> float:
    return value * 9 / 5 + 32


def mph_to_kmh(value: float) -> float:
    return value * KMH_PER_MPH


def kmh_to_mph(value: float) -> float:
    return value / KMH_PER_MPH


def inhg_to_hpa(value: float) -> float:
    return value * HPA_PER_INHG


def hpa_to_inhg(value: float) -> float:
    return value / HPA_PER_INHG


def resolve_precip_unit(label: str | None, field: str = "precipitation") -> str:
    """Normalise an upstream unit label to ``"in"`` or ``"mm"``.

    Raises ``UnitAmbiguousError`` for a missing or unrecognised label.
    """
    normalised = (label or "").strip().lower()
    if normalised in _INCH_LABELS:
        return "in"
    if normalised in _MM_LABELS:
        return "mm"
    raise UnitAmbiguousError(field, label)


def convert_precip(amount: Optional[float], unit_label: str | None, target: str, field: str) -> Optional[float]:
    """Convert ``amount`` reported in ``unit_label`` to ``target`` (``"in"`` or ``"mm"``)."""
    if amount is None:
        return None
    source = resolve_precip_unit(unit_label, field)
    value = float(amount)
    if source == target:
        return value
    return value / MM_PER_INCH if target == "in" else value * MM_PER_INCH
