"""LLM insights source: a short weather narrative and clothing hint from OpenAI chat completions."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from homeboard.models.records import (
    CalendarEvent,
    ForecastDay,
    HourlyForecast,
    Insights,
    InsightsUsage,
    MoonInfo,
)
from homeboard.models.snapshot import CurrentConditions
from homeboard.sources.errors import ConfigError, TransformError
from homeboard.sources.http import HttpSource
from homeboard.utils.time import time_of_day

SYSTEM_PROMPT = """You generate accurate and helpful weather insights for a kitchen e-ink display. The dashboard shows temps/numbers, so describe the FEEL and STORY of the weather to help the user plan their day.

Return JSON:
{
  "clothing_suggestion": "practical clothing advice, max 6 words",
  "daily_summary": "vivid weather narrative, 60-78 chars total (including spaces and punctuation), no ending punctuation"
}

Style:
- Comment specifically on things that are normal or out of the ordinary, help the user plan their day
- Write like a friendly late night weather reporter providing informative updates
- Keep observations factual and helpful
- Describe changes: "warming up", "heating up fast", "cooling down", "drying out", "getting wetter", "clearing up", "getting cloudy"

Rules:
- DO NOT mention specific temps (dashboard shows these) - use "cool", "warm", "hot", "chilly", "mild"
- DO NOT mention specific month or date, but you can describe the season (e.g. Summer, Spring, Fall, Winter)

Examples:
{"clothing_suggestion": "Warm layers and rain gear", "daily_summary": "Dreary and rainy most of the day. Rain not letting up, stay cozy and dry"}
{"clothing_suggestion": "Layers you can shed", "daily_summary": "Cool start warming up fast, sunny and pleasant by afternoon"}
{"clothing_suggestion": "Jacket for tonight", "daily_summary": "Breezy and mild now, cooling down with clear skies come evening"}

Remember:
- Daily summary must be at least 60 characters and CANNOT be more than 78 total characters (including spaces and punctuation)
- You MUST return valid JSON ONLY
"""

PLANNING_FOCUS = {
    "morning": 'the full day ahead. Describe how the day is starting and what to expect ahead. You MUST mention "today" or "this morning" once',
    "afternoon": "this afternoon and evening. Describe the current and upcoming conditions.",
    "evening": "tonight. Describe how the day is ending.",
    "night": 'tomorrow. You MUST mention "tomorrow" once',
}

MAX_CONTEXT_NOTES = 5


class InsightsRequest(BaseModel):
    """Partial snapshot context the prompt is built from. All temperatures in °C."""

    local_time: datetime
    current: CurrentConditions
    forecast: list[ForecastDay] = Field(default_factory=list)
    hourly: list[HourlyForecast] = Field(default_factory=list)
    calendar: list[CalendarEvent] = Field(default_factory=list)
    location_name: Optional[str] = None
    moon: Optional[MoonInfo] = None


def context_notes(request: InsightsRequest, hourly: list[HourlyForecast], period: str) -> list[str]:
    """Short factual notes worth surfacing to the model, most important first."""
    notes: list[str] = []
    current = request.current

    temps = [h.temp if h.temp is not None else 20 for h in hourly]
    if temps and max(temps) - min(temps) >= 8:
        notes.append(f"{round(max(temps) - min(temps))}° temperature swing")

    max_wind = max((h.wind_speed or 0 for h in hourly), default=0)
    if max_wind >= 20:
        notes.append(f"Windy, gusts {round(max_wind)} km/h")

    if current.humidity >= 80:
        notes.append(f"Humid ({current.humidity}%, muggy feel)")
    elif 0 < current.humidity <= 30:
        notes.append(f"Dry ({current.humidity}%, crisp feel)")

    conditions = [h.condition.strip().lower() for h in hourly]
    if len(set(conditions)) > 1:
        change_at = next(i for i in range(1, len(conditions)) if conditions[i] != conditions[i - 1])
        notes.append(f"{conditions[0]} → {conditions[-1]} around {hourly[change_at].time}")

    if request.moon and period in ("evening", "night"):
        if request.moon.phase == "full" or (request.moon.illumination or 0) >= 95:
            notes.append("Full moon (bright night)")
        elif request.moon.phase == "new":
            notes.append("New moon")

    fog_hours = [h for h in hourly if "fog" in h.condition.lower() or "mist" in h.condition.lower()]
    if len(fog_hours) >= 2:
        notes.append(f"Marine layer {fog_hours[0].time}-{fog_hours[-1].time}")

    hot_hours = [h for h in hourly if (h.temp or 0) >= 32]
    if len(hot_hours) >= 2:
        notes.append(f"Heat peak {hot_hours[0].time}-{hot_hours[-1].time}")

    if abs(current.feels_like - current.temp) >= 3:
        delta = current.feels_like - current.temp
        notes.append(f"Feels {'warmer' if delta > 0 else 'cooler'} ({abs(round(delta))}° diff)")

    return notes[:MAX_CONTEXT_NOTES]


def build_prompt(request: InsightsRequest) -> str:
    """User message for the model, scoped to the local time of day."""
    moment = request.local_time
    period = time_of_day(moment.hour)
    is_night = period == "night"
    hours_to_show = 8 if period == "morning" else 6
    hourly = request.hourly if is_night else request.hourly[:hours_to_show]
    day = request.forecast[0] if request.forecast else None

    max_rain = max([day.rain_chance if day else 0, *(h.rain_chance for h in hourly)])
    rain_mention = f", {max_rain}% rain" if max_rain > 0 else ""
    label = "TOMORROW" if is_night else "TODAY"
    daily_info = f"{label}: High {day.high}°, Low {day.low}°{rain_mention}" if day else f"{label}: no forecast"

    hourly_data = "\n".join(
        f"{h.time}: {h.temp}° {h.condition.strip()}" + (f" ({h.rain_chance}%)" if h.rain_chance > 0 else "")
        for h in hourly
    )
    clock = f"{moment.hour % 12 or 12}:{moment.minute:02d} {'AM' if moment.hour < 12 else 'PM'}"

    lines = [
        f"Today is {moment.strftime('%B')} {moment.day}. It is {period.upper()}, {clock}. "
        f"Planning for {PLANNING_FOCUS[period]}",
        "",
        f"CURRENT WEATHER: {request.current.temp}°C, {request.current.description}",
        daily_info,
        "",
        "HOURLY FORECAST:",
        hourly_data,
    ]
    notes = context_notes(request, hourly, period)
    if notes:
        lines += ["", "NOTES: " + " • ".join(notes)]
    if request.calendar:
        lines += ["", "UPCOMING: " + "; ".join(f"{e.title} ({e.time})" for e in request.calendar)]
    return "\n".join(lines)


class InsightsSource(HttpSource[Insights, InsightsRequest]):
    """Optional enrichment. The aggregator falls back to a static description without it."""

    name = "LLM"
    cache_key = "insights"
    record_type = Insights
    ttl_setting = "insights_cache_minutes"
    default_retry_attempts = 3
    default_retry_cooldown = 0.3

    URL = "https://api.openai.com/v1/chat/completions"

    def is_enabled(self) -> bool:
        return bool(self.settings.openai_api_key)

    async def fetch_raw(self, config: InsightsRequest) -> dict[str, Any]:
        if not self.settings.openai_api_key:
            raise ConfigError("OPENAI_API_KEY not configured")

        prompt = build_prompt(config)
        async with self.client(headers={"Authorization": f"Bearer {self.settings.openai_api_key}"}) as client:
            resp = await client.post(
                self.URL,
                json={
                    "model": self.settings.llm_model,
                    "response_format": {"type": "json_object"},
                    "temperature": 0.7,
                    "messages": [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                },
            )
            resp.raise_for_status()
            return {"response": resp.json(), "prompt": prompt}

    def transform(self, raw: dict[str, Any], config: InsightsRequest) -> Insights:
        response = raw["response"]
        content = response["choices"][0]["message"]["content"]
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise TransformError(f"Model returned invalid JSON: {exc}") from exc

        summary = str(parsed.get("daily_summary") or "").strip()
        if not summary:
            raise TransformError("Model response has no daily_summary")

        usage = response.get("usage") or {}
        input_tokens = int(usage.get("prompt_tokens") or 0)
        output_tokens = int(usage.get("completion_tokens") or 0)
        cost = (
            input_tokens * self.settings.llm_input_cost_per_mtok
            + output_tokens * self.settings.llm_output_cost_per_mtok
        ) / 1_000_000

        return Insights(
            clothing_suggestion=str(parsed.get("clothing_suggestion") or "").strip(),
            daily_summary=summary,
            meta=InsightsUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost_usd=cost,
                prompt=raw.get("prompt", ""),
            ),
        )

    def cost_info(self) -> dict[str, Any] | None:
        """Token usage of the last call and spend projected from the cache TTL."""
        cached = self._cached_data(None, allow_stale=True)
        if cached is None or cached.meta is None:
            return None

        meta = cached.meta
        ttl_hours = self.cache_ttl / 3600
        calls_per_day = self.settings.llm_active_hours_per_day / ttl_hours if ttl_hours else 0.0
        daily_cost = meta.cost_usd * calls_per_day
        return {
            "last_call": {
                "input_tokens": meta.input_tokens,
                "output_tokens": meta.output_tokens,
                "total_tokens": meta.input_tokens + meta.output_tokens,
                "cost_usd": meta.cost_usd,
                "prompt": meta.prompt,
            },
            "projections": {
                "calls_per_day": round(calls_per_day, 1),
                "daily_cost_usd": daily_cost,
                "monthly_cost_usd": daily_cost * 30,
            },
        }
