"""Day-over-day comparison of the forecast high, backed by a short history in durable state."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, tzinfo

from homeboard.store.state import StateDocument
from homeboard.utils.time import local_date_key

logger = logging.getLogger("homeboard.aggregator.comparison")

HISTORY_SECTION = "daily_highs"
HISTORY_DAYS = 3

# (dead band, strong delta) per display unit system, in that system's degrees
THRESHOLDS = {"metric": (0.5, 5.5), "us": (1.0, 10.0)}


class TempComparison(str, enum.Enum):
    SAME = "Same as yesterday"
    WARMER = "Warmer than yesterday"
    MUCH_WARMER = "Much warmer than yesterday"
    COOLER = "Cooler than yesterday"
    MUCH_COOLER = "Much cooler than yesterday"


def classify_delta(delta: float, dead_band: float = 0.5, strong: float = 5.5) -> TempComparison:
    if abs(delta) < dead_band:
        return TempComparison.SAME
    if delta >= strong:
        return TempComparison.MUCH_WARMER
    if delta > 0:
        return TempComparison.WARMER
    if delta <= -strong:
        return TempComparison.MUCH_COOLER
    return TempComparison.COOLER


class DailyHighHistory:
    """Keeps the last few daily highs (°C, keyed ``YYYY-MM-DD``) and compares today against yesterday.

    Highs are always stored in °C. The difference is converted to the display
    ``unit_system`` before it is classified, so thresholds are in that system's degrees.
    """

    def __init__(
        self,
        state: StateDocument,
        unit_system: str = "metric",
        dead_band: float | None = None,
        strong_delta: float | None = None,
    ) -> None:
        self.state = state
        self.is_metric = unit_system.lower() != "us"
        default_band, default_strong = THRESHOLDS["metric" if self.is_metric else "us"]
        self.dead_band = default_band if dead_band is None else dead_band
        self.strong_delta = default_strong if strong_delta is None else strong_delta

    def highs(self) -> dict[str, float]:
        stored = self.state.get_key(HISTORY_SECTION, {})
        if not isinstance(stored, dict):
            return {}
        highs: dict[str, float] = {}
        for key, value in stored.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                highs[key] = float(value)
        return highs

    def compare(self, today_high: float | None, today_key: str, yesterday_key: str) -> TempComparison | None:
        """Record today's high on first sight, otherwise compare it with yesterday's.

        Returns ``None`` on the first observation of a day and whenever there is
        no value for yesterday.
        """
        if today_high is None:
            return None

        highs = self.highs()
        if today_key not in highs:
            highs[today_key] = float(today_high)
            newest = sorted(highs, reverse=True)[:HISTORY_DAYS]
            self.state.set_key(HISTORY_SECTION, {key: highs[key] for key in newest})
            logger.info(f"Recorded daily high {today_high:.1f}°C for {today_key}")
            return None

        yesterday_high = highs.get(yesterday_key)
        if yesterday_high is None:
            return None
        delta = float(today_high) - yesterday_high
        if not self.is_metric:
            delta = delta * 9 / 5
        return classify_delta(delta, self.dead_band, self.strong_delta)

    def compare_at(self, today_high: float | None, moment: datetime, zone: tzinfo) -> TempComparison | None:
        """``compare`` with the date keys taken from ``moment`` in the local ``zone``."""
        return self.compare(today_high, local_date_key(moment, zone), local_date_key(moment, zone, days_ago=1))
