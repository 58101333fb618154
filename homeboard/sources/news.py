"""NewsAPI source: top headlines per configured category."""

from __future__ import annotations

import json
from typing import Any

import httpx

from homeboard.models.records import Headline, NewsDigest
from homeboard.models.snapshot import RequestContext
from homeboard.sources.errors import ConfigError
from homeboard.sources.http import HttpSource


class NewsSource(HttpSource[NewsDigest, RequestContext]):
    """Fetches top headlines from NewsAPI.org.

    Requires NEWSAPI_KEY in .env. Disabled without a key.
    """

    name = "News"
    cache_key = "news"
    record_type = NewsDigest
    ttl_setting = "news_cache_minutes"
    default_retry_attempts = 2
    default_retry_cooldown = 2.0

    BASE = "https://newsapi.org/v2"

    def is_enabled(self) -> bool:
        return bool(self.settings.newsapi_key)

    def cache_signature(self, config: RequestContext) -> str:
        return json.dumps({
            "categories": self.settings.news_categories_list,
            "country": self.settings.newsapi_country,
        })

    async def fetch_raw(self, config: RequestContext) -> list[dict[str, Any]]:
        if not self.settings.newsapi_key:
            raise ConfigError("NEWSAPI_KEY not configured")

        categories = self.settings.news_categories_list or ["general"]
        per_cat = max(1, self.settings.news_max_headlines // len(categories))
        batches: list[dict[str, Any]] = []

        async with self.client() as client:
            for category in categories:
                articles = await self._top_headlines(client, category, per_cat)
                batches.append({"category": category, "articles": articles})

        return batches

    async def _top_headlines(self, client: httpx.AsyncClient, category: str, limit: int) -> list[dict]:
        resp = await client.get(
            f"{self.BASE}/top-headlines",
            params={
                "category": category,
                "country": self.settings.newsapi_country,
                "pageSize": limit,
                "apiKey": self.settings.newsapi_key,
            },
        )
        resp.raise_for_status()
        return resp.json().get("articles", [])

    def transform(self, raw: list[dict[str, Any]], config: RequestContext) -> NewsDigest:
        seen: set[str] = set()
        headlines: list[Headline] = []
        for batch in raw:
            for article in batch["articles"]:
                title = (article.get("title") or "").strip()
                # NewsAPI placeholders for deleted articles
                if not title or title == "[Removed]":
                    continue
                key = title.lower()
                if key in seen:
                    continue
                seen.add(key)
                headlines.append(Headline(
                    title=title,
                    source=(article.get("source") or {}).get("name", "") or "",
                    url=article.get("url", "") or "",
                    category=batch["category"],
                    published_at=article.get("publishedAt"),
                ))
        return NewsDigest(headlines=headlines[: self.settings.news_max_headlines])
