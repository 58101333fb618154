"""Homeboard configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Storage
    data_dir: str = Field(default="./data", alias="DATA_DIR")
    state_filename: str = Field(default="state.json", alias="STATE_FILENAME")
    auth_filename: str = Field(default="auth.json", alias="AUTH_FILENAME")

    # Display
    unit_system: str = Field(default="metric", alias="UNIT_SYSTEM")
    timezone: str = Field(default="America/Los_Angeles", alias="TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Upstream HTTP
    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT_SECONDS")

    # Weather (required source)
    google_maps_api_key: str = Field(default="", alias="GOOGLE_MAPS_API_KEY")
    main_location: str = Field(default="", alias="MAIN_LOCATION")
    extra_locations: str = Field(default="", alias="EXTRA_LOCATIONS")

    # Ambient Weather station (optional)
    ambient_application_key: str = Field(default="", alias="AMBIENT_APPLICATION_KEY")
    ambient_api_key: str = Field(default="", alias="AMBIENT_API_KEY")
    ambient_device_mac: str = Field(default="", alias="AMBIENT_DEVICE_MAC")

    # Google Calendar (optional, tokens are written to auth.json by the OAuth flow)
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", alias="GOOGLE_CLIENT_SECRET")
    calendar_max_events: int = Field(default=2, alias="CALENDAR_MAX_EVENTS")
    calendar_lookahead_days: int = Field(default=7, alias="CALENDAR_LOOKAHEAD_DAYS")

    # News (optional)
    newsapi_key: str = Field(default="", alias="NEWSAPI_KEY")
    newsapi_categories: str = Field(default="general,business", alias="NEWSAPI_CATEGORIES")
    newsapi_country: str = Field(default="us", alias="NEWSAPI_COUNTRY")
    news_max_headlines: int = Field(default=8, alias="NEWS_MAX_HEADLINES")

    # Markets (optional)
    alpha_vantage_key: str = Field(default="", alias="ALPHA_VANTAGE_KEY")
    market_symbols: str = Field(
        default="SPY=S&P 500,DIA=Dow Jones,QQQ=Nasdaq,GLD=Gold",
        validation_alias=AliasChoices("MARKET_SYMBOLS", "ALPHA_VANTAGE_SYMBOLS"),
    )

    # LLM insights (optional, static description used when not set)
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    llm_model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL")
    llm_input_cost_per_mtok: float = Field(default=0.15, alias="LLM_INPUT_COST_PER_MTOK")
    llm_output_cost_per_mtok: float = Field(default=0.60, alias="LLM_OUTPUT_COST_PER_MTOK")
    llm_active_hours_per_day: float = Field(default=19.0, alias="LLM_ACTIVE_HOURS_PER_DAY")

    # Cache TTLs (minutes)
    weather_cache_minutes: int = Field(default=30, alias="WEATHER_CACHE_MINUTES")
    ambient_cache_minutes: int = Field(default=10, alias="AMBIENT_CACHE_MINUTES")
    calendar_cache_minutes: int = Field(default=30, alias="CALENDAR_CACHE_MINUTES")
    news_cache_minutes: int = Field(default=120, alias="NEWS_CACHE_MINUTES")
    markets_cache_minutes: int = Field(default=15, alias="MARKETS_CACHE_MINUTES")
    insights_cache_minutes: int = Field(default=90, alias="INSIGHTS_CACHE_MINUTES")

    # Day-over-day temperature comparison, in degrees of the display unit system.
    # Unset means 0.5/5.5 for metric and 1/10 for us.
    temp_comparison_dead_band: float | None = Field(default=None, alias="TEMP_COMPARISON_DEAD_BAND")
    temp_comparison_strong_delta: float | None = Field(default=None, alias="TEMP_COMPARISON_STRONG_DELTA")

    @property
    def state_path(self) -> Path:
        return Path(self.data_dir) / self.state_filename

    @property
    def auth_path(self) -> Path:
        return Path(self.data_dir) / self.auth_filename

    @property
    def is_metric(self) -> bool:
        return self.unit_system.lower() != "us"

    @property
    def locations_list(self) -> list[str]:
        locations = [self.main_location.strip()] if self.main_location.strip() else []
        locations.extend(loc.strip() for loc in self.extra_locations.split(";") if loc.strip())
        return locations

    @property
    def news_categories_list(self) -> list[str]:
        return [c.strip() for c in self.newsapi_categories.split(",") if c.strip()]

    @property
    def market_symbols_map(self) -> dict[str, str]:
        """Parse ``SYMBOL=Name`` pairs; a bare symbol is its own name."""
        symbols: dict[str, str] = {}
        for pair in self.market_symbols.split(","):
            if not pair.strip():
                continue
            symbol, _, name = pair.partition("=")
            symbol = symbol.strip().upper()
            if symbol:
                symbols[symbol] = name.strip() or symbol
        return symbols

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore", "populate_by_name": True}


settings = Settings()
