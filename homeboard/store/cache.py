"""Per-source cache entries kept in the ``service_cache`` section of the state document."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from homeboard.store.state import StateDocument

logger = logging.getLogger("homeboard.cache")

CACHE_SECTION = "service_cache"


@dataclass(frozen=True)
class CacheEntry:
    """Cached record for one source. ``data`` is already in JSON form."""

    data: Any
    fetched_at: float
    signature: str | None = None

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        return self.age(now) < ttl

    def matches(self, signature: str | None) -> bool:
        return signature is None or self.signature == signature


class CacheStore:
    """``get`` / ``set`` / ``delete`` over the durable state document."""

    def __init__(self, state: StateDocument) -> None:
        self.state = state

    def get(self, key: str) -> CacheEntry | None:
        raw = self.state.get_item(CACHE_SECTION, key)
        if not isinstance(raw, dict) or raw.get("data") is None:
            return None
        try:
            return CacheEntry(
                data=raw["data"],
                fetched_at=float(raw["fetched_at"]),
                signature=raw.get("signature"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Discarding malformed cache entry for {key}: {exc}")
            return None

    def set(self, key: str, entry: CacheEntry) -> None:
        previous = self.get(key)
        if previous is not None and entry.fetched_at < previous.fetched_at:
            # fetched_at never regresses for a key, even if the clock does
            entry = CacheEntry(data=entry.data, fetched_at=previous.fetched_at, signature=entry.signature)
        self.state.set_item(CACHE_SECTION, key, asdict(entry))

    def delete(self, key: str) -> None:
        self.state.delete_item(CACHE_SECTION, key)

    def fetched_at(self, key: str) -> float | None:
        entry = self.get(key)
        return entry.fetched_at if entry else None
