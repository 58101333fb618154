"""Alpha Vantage source: latest quote per configured symbol."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from homeboard.models.records import MarketQuote, MarketsData
from homeboard.models.snapshot import RequestContext
from homeboard.sources.errors import ConfigError, FetchError
from homeboard.sources.http import HttpSource

logger = logging.getLogger("homeboard.sources.markets")


class MarketsSource(HttpSource[MarketsData, RequestContext]):
    """Fetch quote snapshots from Alpha Vantage."""

    name = "Markets"
    cache_key = "markets"
    record_type = MarketsData
    ttl_setting = "markets_cache_minutes"
    default_retry_attempts = 3
    default_retry_cooldown = 1.0

    BASE_URL = "https://www.alphavantage.co/query"

    def is_enabled(self) -> bool:
        return bool(self.settings.alpha_vantage_key)

    def cache_signature(self, config: RequestContext) -> str:
        return json.dumps({"symbols": list(self.settings.market_symbols_map)})

    async def fetch_raw(self, config: RequestContext) -> dict[str, Any]:
        if not self.settings.alpha_vantage_key:
            raise ConfigError("ALPHA_VANTAGE_KEY not configured")
        symbols = list(self.settings.market_symbols_map)
        if not symbols:
            raise ConfigError("No market symbols configured")

        quotes: dict[str, dict] = {}
        async with self.client() as client:
            for symbol in symbols:
                quote = await self._fetch_quote(client, symbol)
                if quote:
                    quotes[symbol] = quote

        if not quotes:
            raise FetchError(f"No quotes returned for {', '.join(symbols)}")
        return {"quotes": quotes, "as_of": datetime.fromtimestamp(self.clock(), UTC).isoformat()}

    async def _fetch_quote(self, client: httpx.AsyncClient, symbol: str) -> dict | None:
        resp = await client.get(
            self.BASE_URL,
            params={
                "function": "GLOBAL_QUOTE",
                "symbol": symbol,
                "apikey": self.settings.alpha_vantage_key,
            },
        )
        resp.raise_for_status()
        data = resp.json()
        if "Note" in data or "Information" in data:
            # Free-tier rate-limit reached.
            logger.warning(f"[Markets] Rate limited while fetching {symbol}")
            return None
        return data.get("Global Quote") or None

    def transform(self, raw: dict[str, Any], config: RequestContext) -> MarketsData:
        names = self.settings.market_symbols_map
        quotes: list[MarketQuote] = []
        for symbol, quote in raw["quotes"].items():
            price = float(quote.get("05. price", 0) or 0)
            if price <= 0:
                continue
            change = float(quote.get("09. change", 0) or 0)
            change_percent = float((quote.get("10. change percent", "0%") or "0%").replace("%", ""))
            quotes.append(MarketQuote(
                symbol=symbol,
                name=names.get(symbol, symbol),
                price=round(price, 2),
                change=round(change, 2),
                change_percent=round(change_percent, 2),
            ))
        return MarketsData(quotes=quotes, as_of=raw.get("as_of"))
