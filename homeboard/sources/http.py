"""Shared plumbing for sources that talk to an upstream HTTP API."""

from __future__ import annotations

from typing import Any

import httpx

from homeboard.config import Settings, settings as default_settings
from homeboard.sources.base import C, ResilientSource, T
from homeboard.store.cache import CacheStore
from homeboard.store.status import SourceStatusRegistry


class HttpSource(ResilientSource[T, C]):
    """A resilient source configured from ``Settings`` that fetches through httpx.

    ``ttl_setting`` names the ``Settings`` field holding the cache TTL in minutes.
    ``transport`` lets tests swap in ``httpx.MockTransport``.
    """

    ttl_setting: str = ""

    def __init__(
        self,
        cache: CacheStore,
        registry: SourceStatusRegistry,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **options: Any,
    ) -> None:
        self.settings = settings or default_settings
        self.transport = transport
        if self.ttl_setting and options.get("cache_ttl") is None:
            options["cache_ttl"] = float(getattr(self.settings, self.ttl_setting)) * 60
        super().__init__(cache, registry, **options)

    def client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.http_timeout_seconds, transport=self.transport, **kwargs)
