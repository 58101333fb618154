"""Tests for the upstream sources, with HTTP answered by httpx.MockTransport."""

import json
from datetime import UTC, datetime

import httpx
import pytest

from homeboard.models.records import ForecastDay, HourlyForecast
from homeboard.models.snapshot import CurrentConditions, RequestContext
from homeboard.models.status import DataOrigin
from homeboard.sources.ambient import AmbientSource
from homeboard.sources.calendar import CalendarSource, relative_label
from homeboard.sources.errors import SourceUnavailableError, TransformError
from homeboard.sources.insights import InsightsRequest, InsightsSource, build_prompt
from homeboard.sources.markets import MarketsSource
from homeboard.sources.news import NewsSource
from homeboard.sources.weather import WeatherSource

CONTEXT = RequestContext(base_url="http://localhost:3000", timezone="America/Los_Angeles")


class TestWeatherSource:
    @pytest.fixture
    def settings(self, make_settings):
        return make_settings(google_maps_api_key="gkey", main_location="Springfield, IL")

    @pytest.mark.asyncio
    async def test_fetch_and_transform(self, make_http_source, settings, google_weather):
        requests = []
        source = make_http_source(WeatherSource, settings, google_weather(requests=requests))

        result = await source.get_data(CONTEXT)

        assert result.origin == DataOrigin.API
        report = result.data
        main = report.main
        assert main.name == "Springfield"
        assert main.region == "Springfield, IL, USA"
        assert main.current_temp == 20.0
        assert main.feels_like == 19.5
        assert main.wind_speed == 16.1
        assert main.wind_dir == 180.0
        assert main.pressure == 1012.5
        assert main.icon == "partly_cloudy"
        assert main.high == 25.0 and main.low == 15.0
        assert [day.day for day in report.forecast] == ["Sat", "Sun"]
        assert report.forecast[1].icon == "rain"
        assert report.hourly[0].temp == 24.0
        assert report.timezone == "America/Chicago"
        assert report.sun.sunrise == "05:30 AM"
        assert report.moon.phase == "waxing_crescent"
        assert report.precipitation.last_24h == 0.2
        assert report.precipitation.unit == "INCHES"
        assert all(r.url.params.get("key") == "gkey" for r in requests)
        assert any(r.url.params.get("days") == "7" for r in requests)

    @pytest.mark.asyncio
    async def test_unresolvable_location_fails_after_retries(self, make_http_source, settings, sleeper, google_weather):
        source = make_http_source(WeatherSource, settings, google_weather(geocode={"status": "ZERO_RESULTS", "results": []}))

        with pytest.raises(SourceUnavailableError) as excinfo:
            await source.get_data(CONTEXT)

        assert "Could not resolve location" in excinfo.value.message
        assert len(sleeper.delays) == 2

    @pytest.mark.asyncio
    async def test_disabled_without_key(self, make_http_source, make_settings, google_weather):
        source = make_http_source(WeatherSource, make_settings(main_location="Springfield"), google_weather())

        result = await source.get_data(CONTEXT)

        assert result.origin == DataOrigin.DISABLED

    def test_cache_ttl_comes_from_settings(self, make_http_source, settings, google_weather):
        source = make_http_source(WeatherSource, settings, google_weather())

        assert source.cache_ttl == settings.weather_cache_minutes * 60

    def test_signature_tracks_locations(self, make_http_source, make_settings, google_weather):
        one = make_http_source(WeatherSource, make_settings(main_location="A"), google_weather())
        two = make_http_source(WeatherSource, make_settings(main_location="A", extra_locations="B"), google_weather())

        assert one.cache_signature(CONTEXT) != two.cache_signature(CONTEXT)


class TestAmbientSource:
    STATION = {
        "tempf": 68.0,
        "feelsLike": 66.2,
        "humidity": 40,
        "baromrelin": 29.92,
        "windspeedmph": 5.04,
        "winddir": 270,
        "dailyrainin": 0.1,
        "weeklyrainin": 0.5,
        "dateutc": 1717243200000,
    }

    @pytest.fixture
    def settings(self, make_settings):
        return make_settings(ambient_application_key="app", ambient_api_key="api")

    @pytest.mark.asyncio
    async def test_discovers_and_stores_device(self, make_http_source, settings, auth, sleeper):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/devices":
                return httpx.Response(200, json=[{"macAddress": "AA:BB"}])
            if request.url.path.startswith("/v1/devices/"):
                assert request.url.params["limit"] == "1"
                return httpx.Response(200, json=[self.STATION])
            return httpx.Response(404)

        source = make_http_source(AmbientSource, settings, handler, auth=auth)

        result = await source.get_data(CONTEXT)

        reading = result.data
        assert reading.temp_f == 68.0
        assert reading.feels_like_f == 66.2
        assert reading.pressure_inhg == 29.92
        assert reading.wind_speed_mph == 5.0
        assert reading.wind_direction == "W"
        assert reading.precipitation.last_24h == 0.1
        assert reading.precipitation.unit == "in"
        assert reading.observed_at == "2024-06-01T12:00:00+00:00"
        assert auth.ambient_device_mac() == "AA:BB"
        assert sleeper.delays == [1.0]

    @pytest.mark.asyncio
    async def test_configured_mac_skips_discovery(self, make_http_source, make_settings, auth):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json=[self.STATION])

        settings = make_settings(ambient_application_key="app", ambient_api_key="api", ambient_device_mac="CC:DD")
        source = make_http_source(AmbientSource, settings, handler, auth=auth)

        await source.get_data(CONTEXT)

        assert paths == ["/v1/devices/CC:DD"]

    def test_missing_temperature_is_rejected(self, make_http_source, settings):
        source = make_http_source(AmbientSource, settings, lambda request: httpx.Response(500))

        with pytest.raises(ValueError):
            source.transform({"humidity": 40}, CONTEXT)


class TestCalendarSource:
    # clock is 2023-11-14T22:13:20Z, 14:13 in Los Angeles
    EVENTS = [
        {"summary": "Dentist", "start": {"dateTime": "2023-11-15T18:30:00Z"}},
        {"summary": "Dinner", "start": {"dateTime": "2023-11-15T01:00:00Z"}},
        {"summary": "Holiday", "start": {"date": "2023-11-15"}},
        {"summary": "Earlier", "start": {"dateTime": "2023-11-14T20:00:00Z"}},
        {"summary": "Far away", "start": {"dateTime": "2023-11-30T18:00:00Z"}},
    ]

    @pytest.fixture
    def settings(self, make_settings):
        return make_settings(google_client_id="cid", google_client_secret="secret")

    @pytest.fixture
    def signed_in(self, auth):
        auth.document.set_key("google", {"tokens": {"access_token": "tok"}, "selectedCalendars": ["primary", "broken"]})
        return auth

    @pytest.mark.asyncio
    async def test_upcoming_timed_events(self, make_http_source, settings, signed_in):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer tok"
            if "/calendars/primary/" in request.url.path:
                return httpx.Response(200, json={"items": self.EVENTS})
            return httpx.Response(500)

        source = make_http_source(CalendarSource, settings, handler, auth=signed_in)

        result = await source.get_data(CONTEXT)

        assert [(e.title, e.time) for e in result.data] == [
            ("Dinner", "Today at 5:00 pm"),
            ("Dentist", "Tomorrow at 10:30 am"),
        ]

    @pytest.mark.asyncio
    async def test_all_calendars_failing_is_an_error(self, make_http_source, settings, signed_in):
        source = make_http_source(CalendarSource, settings, lambda request: httpx.Response(503), auth=signed_in)

        with pytest.raises(SourceUnavailableError) as excinfo:
            await source.get_data(CONTEXT)

        assert "All calendars failed" in excinfo.value.message

    def test_disabled_without_tokens(self, make_http_source, settings, auth):
        source = make_http_source(CalendarSource, settings, lambda request: httpx.Response(200), auth=auth)

        assert source.is_enabled() is False

    def test_relative_labels(self):
        now = datetime(2023, 11, 14, 22, 13, tzinfo=UTC)

        assert relative_label(datetime(2023, 11, 17, 18, 0, tzinfo=UTC), now, "America/Los_Angeles") == "In 3 days at 10:00 am"
        assert relative_label(datetime(2023, 11, 14, 20, 0, tzinfo=UTC), now, "America/Los_Angeles") == "Today at 12:00 pm"


class TestNewsSource:
    ARTICLES = {
        "general": [
            {"title": "Storm moves east", "source": {"name": "Wire"}, "url": "https://x/1", "publishedAt": "2024-06-01T10:00:00Z"},
            {"title": "[Removed]"},
            {"title": "Local team wins"},
        ],
        "business": [
            {"title": "storm moves EAST"},
            {"title": "Rates hold steady", "source": {"name": "Desk"}},
        ],
    }

    @pytest.mark.asyncio
    async def test_deduplicates_across_categories(self, make_http_source, make_settings):
        page_sizes = []

        def handler(request: httpx.Request) -> httpx.Response:
            page_sizes.append(request.url.params["pageSize"])
            return httpx.Response(200, json={"articles": self.ARTICLES[request.url.params["category"]]})

        settings = make_settings(newsapi_key="k", newsapi_categories="general,business")
        source = make_http_source(NewsSource, settings, handler)

        result = await source.get_data(CONTEXT)

        headlines = result.data.headlines
        assert [h.title for h in headlines] == ["Storm moves east", "Local team wins", "Rates hold steady"]
        assert headlines[0].source == "Wire"
        assert headlines[2].category == "business"
        assert page_sizes == ["4", "4"]

    @pytest.mark.asyncio
    async def test_http_error_is_retried(self, make_http_source, make_settings):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(502)
            return httpx.Response(200, json={"articles": [{"title": "Back again"}]})

        source = make_http_source(NewsSource, make_settings(newsapi_key="k", newsapi_categories="general"), handler)

        result = await source.get_data(CONTEXT)

        assert [h.title for h in result.data.headlines] == ["Back again"]


class TestMarketsSource:
    @pytest.mark.asyncio
    async def test_quotes_skip_rate_limits_and_empty_prices(self, make_http_source, make_settings):
        answers = {
            "SPY": {"Global Quote": {"05. price": "500.123", "09. change": "1.5", "10. change percent": "0.3012%"}},
            "QQQ": {"Note": "API call frequency exceeded"},
            "DIA": {"Global Quote": {"05. price": "0.0000"}},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["function"] == "GLOBAL_QUOTE"
            return httpx.Response(200, json=answers[request.url.params["symbol"]])

        settings = make_settings(alpha_vantage_key="k", market_symbols="SPY=S&P 500,QQQ,DIA=Dow")
        source = make_http_source(MarketsSource, settings, handler)

        result = await source.get_data(CONTEXT)

        quotes = result.data.quotes
        assert len(quotes) == 1
        assert quotes[0].symbol == "SPY"
        assert quotes[0].name == "S&P 500"
        assert quotes[0].price == 500.12
        assert quotes[0].change_percent == 0.3
        assert result.data.as_of.startswith("2023-11-14T22:13:20")

    @pytest.mark.asyncio
    async def test_nothing_returned_is_an_error(self, make_http_source, make_settings):
        settings = make_settings(alpha_vantage_key="k", market_symbols="SPY")
        source = make_http_source(MarketsSource, settings, lambda request: httpx.Response(200, json={"Information": "limit"}))

        with pytest.raises(SourceUnavailableError):
            await source.get_data(CONTEXT)


class TestInsightsSource:
    @pytest.fixture
    def request_context(self):
        return InsightsRequest(
            local_time=datetime(2024, 6, 1, 8, 0, tzinfo=UTC),
            current=CurrentConditions(temp=14.0, feels_like=10.0, humidity=85, description="Foggy"),
            forecast=[ForecastDay(date="2024-06-01", day="Sat", high=22.0, low=12.0, icon="fog", rain_chance=10)],
            hourly=[
                HourlyForecast(time="8 AM", temp=12.0, condition="Fog"),
                HourlyForecast(time="9 AM", temp=13.0, condition="Fog"),
                HourlyForecast(time="1 PM", temp=21.0, condition="Sunny"),
            ],
            location_name="Home",
        )

    @staticmethod
    def completion(content: str) -> dict:
        return {
            "choices": [{"message": {"content": content}}],
            "usage": {"prompt_tokens": 1000, "completion_tokens": 200},
        }

    def test_prompt_scopes_to_morning(self, request_context):
        prompt = build_prompt(request_context)

        assert "It is MORNING, 8:00 AM" in prompt
        assert "Planning for the full day ahead" in prompt
        assert "TODAY: High 22.0°, Low 12.0°, 10% rain" in prompt
        assert "9° temperature swing" in prompt
        assert "Humid (85%, muggy feel)" in prompt
        assert "fog → sunny around 1 PM" in prompt
        assert "Marine layer 8 AM-9 AM" in prompt
        assert "Feels cooler (4° diff)" in prompt

    def test_prompt_at_night_looks_at_tomorrow(self, request_context):
        night = request_context.model_copy(update={"local_time": datetime(2024, 6, 1, 22, 0, tzinfo=UTC)})

        prompt = build_prompt(night)

        assert "Planning for tomorrow" in prompt
        assert "TOMORROW: High 22.0°" in prompt

    @pytest.mark.asyncio
    async def test_parses_response_and_costs(self, make_http_source, make_settings, request_context):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            content = json.dumps({"clothing_suggestion": "Light jacket", "daily_summary": "Foggy start clearing to sunshine later this morning"})
            return httpx.Response(200, json=self.completion(content))

        source = make_http_source(InsightsSource, make_settings(openai_api_key="sk"), handler)

        result = await source.get_data(request_context)

        insights = result.data
        assert insights.clothing_suggestion == "Light jacket"
        assert insights.daily_summary.startswith("Foggy start")
        assert insights.meta.cost_usd == pytest.approx(0.00027)
        assert bodies[0]["response_format"] == {"type": "json_object"}
        assert bodies[0]["messages"][0]["role"] == "system"

        cost = source.cost_info()
        assert cost["last_call"]["total_tokens"] == 1200
        assert cost["projections"]["calls_per_day"] == pytest.approx(12.7)
        assert cost["projections"]["monthly_cost_usd"] == pytest.approx(cost["projections"]["daily_cost_usd"] * 30)

    @pytest.mark.asyncio
    async def test_invalid_json_is_retried(self, make_http_source, make_settings, request_context):
        replies = [self.completion("not json"), self.completion(json.dumps({"daily_summary": "Clear and calm"}))]
        source = make_http_source(InsightsSource, make_settings(openai_api_key="sk"), lambda request: httpx.Response(200, json=replies.pop(0)))

        result = await source.get_data(request_context)

        assert result.data.daily_summary == "Clear and calm"
        assert replies == []

    @pytest.mark.asyncio
    async def test_empty_choices_fall_back_to_stale_cache(self, make_http_source, make_settings, request_context, clock):
        replies = [self.completion(json.dumps({"daily_summary": "Clear and calm"}))] + [{"choices": []}] * 3
        source = make_http_source(InsightsSource, make_settings(openai_api_key="sk"), lambda request: httpx.Response(200, json=replies.pop(0)))
        await source.get_data(request_context)
        clock.advance(86_400)

        result = await source.get_data(request_context)

        assert result.origin == DataOrigin.STALE_CACHE
        assert result.data.daily_summary == "Clear and calm"
        assert "IndexError" in result.status.error
        assert replies == []

    def test_empty_summary_is_rejected(self, make_http_source, make_settings, request_context):
        source = make_http_source(InsightsSource, make_settings(openai_api_key="sk"), lambda request: httpx.Response(500))

        with pytest.raises(TransformError):
            source.transform({"response": self.completion(json.dumps({"daily_summary": "  "}))}, request_context)

    def test_no_cost_info_before_first_call(self, make_http_source, make_settings):
        source = make_http_source(InsightsSource, make_settings(openai_api_key="sk"), lambda request: httpx.Response(500))

        assert source.cost_info() is None
