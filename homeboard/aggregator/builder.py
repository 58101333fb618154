"""Aggregator: combines every source into one dashboard snapshot.

Weather is required; its failure aborts the pass. Every other source is
optional and isolated: a failing source falls back to its own stale cache,
then to a static substitute where one exists, then to an empty field. Each
field records which of those tiers produced it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Generic, Optional, TypeVar

import httpx

from homeboard.aggregator.comparison import DailyHighHistory
from homeboard.aggregator.fallback import (
    build_static_description,
    current_from_ambient,
    current_from_weather,
    precipitation_summary,
)
from homeboard.config import Settings, settings as default_settings
from homeboard.models.records import ForecastDay, HourlyForecast, WeatherLocation
from homeboard.models.snapshot import (
    METRIC_UNITS,
    US_UNITS,
    CurrentConditions,
    DashboardSnapshot,
    FieldOrigin,
    RequestContext,
    Wind,
)
from homeboard.models.status import DataOrigin, SourceStatus
from homeboard.sources.ambient import AmbientSource
from homeboard.sources.base import ResilientSource
from homeboard.sources.calendar import CalendarSource
from homeboard.sources.errors import SourceError, SourceUnavailableError
from homeboard.sources.insights import InsightsRequest, InsightsSource
from homeboard.sources.markets import MarketsSource
from homeboard.sources.news import NewsSource
from homeboard.sources.weather import WeatherSource
from homeboard.store.auth import AuthStore
from homeboard.store.cache import CacheStore
from homeboard.store.state import StateDocument
from homeboard.store.status import SourceStatusRegistry
from homeboard.utils.time import resolve_zone
from homeboard.weather_utils import c_to_f, hpa_to_inhg, kmh_to_mph

logger = logging.getLogger("homeboard.aggregator")

T = TypeVar("T")


class AggregationError(Exception):
    """The required source could not provide data; no snapshot can be built."""


@dataclass
class OptionalResult(Generic[T]):
    """An optional source's data after the stale-cache tier, with its provenance."""

    data: Optional[T]
    origin: FieldOrigin
    status: SourceStatus


def _origin(origin: DataOrigin) -> FieldOrigin:
    return FieldOrigin(origin.value)


class Aggregator:
    """Builds ``DashboardSnapshot`` objects from explicitly composed sources."""

    def __init__(
        self,
        weather: WeatherSource,
        history: DailyHighHistory,
        *,
        ambient: AmbientSource | None = None,
        calendar: CalendarSource | None = None,
        news: NewsSource | None = None,
        markets: MarketsSource | None = None,
        insights: InsightsSource | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.weather = weather
        self.history = history
        self.ambient = ambient
        self.calendar = calendar
        self.news = news
        self.markets = markets
        self.insights = insights
        self.settings = settings or default_settings
        self.clock = clock

    @property
    def sources(self) -> list[ResilientSource]:
        optional = [self.ambient, self.calendar, self.news, self.markets, self.insights]
        return [self.weather, *(source for source in optional if source is not None)]

    # ── Status surface ───────────────────────────────────────

    def get_all_statuses(self) -> dict[str, SourceStatus]:
        return {source.cache_key: source.get_status() for source in self.sources}

    def status_report(self) -> dict[str, Any]:
        """Everything an operator needs: per-source status, attempt metrics, LLM spend."""
        return {
            "statuses": {key: status.model_dump(mode="json") for key, status in self.get_all_statuses().items()},
            "metrics": self.weather.metrics.snapshot(),
            "llm_cost": self.insights.cost_info() if self.insights else None,
        }

    # ── Source invocation ────────────────────────────────────

    async def _optional(self, source: ResilientSource[T, Any] | None, config: Any) -> OptionalResult[T] | None:
        if source is None:
            return None
        log_extra = {"source": source.cache_key}
        try:
            result = await source.get_data(config)
        except Exception as exc:
            # get_data has already tried its stale cache.
            logger.info(f"[Aggregator] {source.name} unavailable (optional): {exc}", extra=log_extra)
            return OptionalResult(None, FieldOrigin.ABSENT, source.get_status())

        if result.origin == DataOrigin.DISABLED:
            return OptionalResult(None, FieldOrigin.DISABLED, result.status)
        return OptionalResult(result.data, _origin(result.origin), result.status)

    # ── Snapshot ─────────────────────────────────────────────

    async def get_snapshot(self, context: RequestContext) -> DashboardSnapshot:
        try:
            weather_result = await self.weather.get_data(context)
        except SourceError as exc:
            message = exc.message if isinstance(exc, SourceUnavailableError) else str(exc)
            logger.error(f"[Aggregator] Weather source failed (required): {message}", extra={"source": "weather"})
            raise AggregationError(f"Weather source unavailable: {message}") from exc
        except Exception as exc:
            logger.exception("[Aggregator] Weather source failed unexpectedly (required)", extra={"source": "weather"})
            raise AggregationError(f"Weather source unavailable: {type(exc).__name__}: {exc}") from exc
        if weather_result.data is None:
            raise AggregationError("Weather source unavailable: missing API key or locations")

        report = weather_result.data
        timezone = report.timezone or context.timezone or self.settings.timezone
        zone = resolve_zone(timezone, self.settings.timezone)
        now = datetime.fromtimestamp(self.clock(), UTC)
        local_now = now.astimezone(zone)
        local_context = RequestContext(base_url=context.base_url, timezone=timezone)

        origins: dict[str, FieldOrigin] = {"weather": _origin(weather_result.origin)}
        statuses: dict[str, SourceStatus] = {self.weather.cache_key: weather_result.status}

        ambient, calendar, news, markets = await asyncio.gather(
            self._optional(self.ambient, local_context),
            self._optional(self.calendar, local_context),
            self._optional(self.news, local_context),
            self._optional(self.markets, local_context),
        )
        for source, outcome in (
            (self.ambient, ambient), (self.calendar, calendar), (self.news, news), (self.markets, markets),
        ):
            if source is not None and outcome is not None:
                statuses[source.cache_key] = outcome.status

        main = report.main
        if ambient is not None and ambient.data is not None:
            current = current_from_ambient(ambient.data, main)
            raw_precipitation = ambient.data.precipitation
            origins["current"] = ambient.origin
        else:
            current = current_from_weather(main)
            raw_precipitation = report.precipitation
            origins["current"] = FieldOrigin.STATIC_FALLBACK
        origins["precipitation"] = origins["current"]

        calendar_events = calendar.data if calendar and calendar.data else []
        origins["calendar_events"] = calendar.origin if calendar else FieldOrigin.ABSENT
        headlines = news.data.headlines if news and news.data else []
        origins["headlines"] = news.origin if news else FieldOrigin.ABSENT
        quotes = markets.data.quotes if markets and markets.data else []
        origins["markets"] = markets.origin if markets else FieldOrigin.ABSENT

        today_high = report.forecast[0].high if report.forecast else None
        comparison = self.history.compare_at(today_high, now, zone)

        # Insights run last: the prompt needs everything gathered above.
        clothing_suggestion = ""
        insights_request = InsightsRequest(
            local_time=local_now,
            current=current,
            forecast=report.forecast,
            hourly=report.hourly,
            calendar=calendar_events,
            location_name=main.name,
            moon=report.moon,
        )
        insights = await self._optional(self.insights, insights_request)
        if insights is not None:
            statuses[self.insights.cache_key] = insights.status
        usable = insights.data if insights is not None and insights.data is not None else None
        summary_origin = insights.origin if insights is not None else FieldOrigin.ABSENT
        if self.insights is not None and (usable is None or not usable.daily_summary.strip()):
            # A disabled source still has whatever it cached while it was configured.
            usable = self.insights.peek_cache(insights_request, allow_stale=True)
            summary_origin = FieldOrigin.STALE_CACHE
            if usable is not None:
                logger.info(
                    "[Aggregator] Using stale Insights cache",
                    extra={"source": self.insights.cache_key, "origin": "stale_cache"},
                )

        if usable is not None and usable.daily_summary.strip():
            daily_summary = usable.daily_summary.strip()
            clothing_suggestion = usable.clothing_suggestion
            origins["daily_summary"] = summary_origin
        else:
            logger.info("[Aggregator] Using static description fallback", extra={"origin": "static_fallback"})
            daily_summary = build_static_description(current, report.forecast, report.hourly, local_now.hour)
            origins["daily_summary"] = FieldOrigin.STATIC_FALLBACK

        is_metric = self.settings.is_metric
        return DashboardSnapshot(
            generated_at=now.isoformat(),
            date=local_now.date().isoformat(),
            timezone=timezone,
            units=METRIC_UNITS if is_metric else US_UNITS,
            current=current if is_metric else _current_to_us(current),
            locations=[loc if is_metric else _location_to_us(loc) for loc in report.locations],
            forecast=[day if is_metric else _day_to_us(day) for day in report.forecast],
            hourly_forecast=[hour if is_metric else _hour_to_us(hour) for hour in report.hourly],
            sun=report.sun,
            moon=report.moon,
            precipitation=precipitation_summary(raw_precipitation, "mm" if is_metric else "in"),
            temp_comparison=comparison.value if comparison else None,
            calendar_events=calendar_events,
            headlines=headlines,
            markets=quotes,
            clothing_suggestion=clothing_suggestion,
            daily_summary=daily_summary,
            origins=origins,
            statuses=statuses,
        )


# ── Display conversion (records are metric) ─────────────────


def _f(value: float) -> float:
    return round(c_to_f(value), 1)


def _current_to_us(current: CurrentConditions) -> CurrentConditions:
    return current.model_copy(update={
        "temp": round(c_to_f(current.temp)),
        "feels_like": round(c_to_f(current.feels_like)),
        "pressure": round(hpa_to_inhg(current.pressure), 2) if current.pressure is not None else None,
        "wind": Wind(
            speed=round(kmh_to_mph(current.wind.speed), 1) if current.wind.speed is not None else None,
            direction=current.wind.direction,
        ),
    })


def _day_to_us(day: ForecastDay) -> ForecastDay:
    return day.model_copy(update={"high": _f(day.high), "low": _f(day.low)})


def _hour_to_us(hour: HourlyForecast) -> HourlyForecast:
    return hour.model_copy(update={
        "temp": _f(hour.temp) if hour.temp is not None else None,
        "wind_speed": round(kmh_to_mph(hour.wind_speed), 1) if hour.wind_speed is not None else None,
    })


def _location_to_us(location: WeatherLocation) -> WeatherLocation:
    return location.model_copy(update={
        "current_temp": _f(location.current_temp),
        "feels_like": _f(location.feels_like),
        "high": _f(location.high),
        "low": _f(location.low),
        "pressure": round(hpa_to_inhg(location.pressure), 2),
        "wind_speed": round(kmh_to_mph(location.wind_speed), 1),
        "forecast": [_day_to_us(day) for day in location.forecast],
    })


# ── Composition ──────────────────────────────────────────────


def build_aggregator(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    **options: Any,
) -> Aggregator:
    """Default wiring: one state document, one auth document, every source.

    ``options`` (clock, sleep, rng, metrics) are forwarded to each source.
    """
    settings = settings or default_settings
    state = StateDocument(settings.state_path)
    auth = AuthStore(StateDocument(settings.auth_path))
    cache = CacheStore(state)
    registry = SourceStatusRegistry(state)

    def make(source_cls: type[ResilientSource], **extra: Any) -> Any:
        return source_cls(cache, registry, settings=settings, transport=transport, **extra, **options)

    return Aggregator(
        weather=make(WeatherSource),
        history=DailyHighHistory(
            state,
            unit_system=settings.unit_system,
            dead_band=settings.temp_comparison_dead_band,
            strong_delta=settings.temp_comparison_strong_delta,
        ),
        ambient=make(AmbientSource, auth=auth),
        calendar=make(CalendarSource, auth=auth),
        news=make(NewsSource),
        markets=make(MarketsSource),
        insights=make(InsightsSource),
        settings=settings,
        clock=options.get("clock", time.time),
    )
