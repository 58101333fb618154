"""Source health models."""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel


class SourceState(str, enum.Enum):
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"
    PENDING = "pending"


class DataOrigin(str, enum.Enum):
    """Where a ``get_data`` result came from."""

    CACHE = "cache"
    API = "api"
    STALE_CACHE = "stale_cache"
    DISABLED = "disabled"


class PersistedStatus(BaseModel):
    """The part of a source status that survives between runs."""

    state: SourceState = SourceState.UNKNOWN
    latency: Optional[float] = None
    error: Optional[str] = None


class SourceStatus(BaseModel):
    """Full status as reported to operators; enablement and cache age are computed live."""

    name: str
    is_enabled: bool
    state: SourceState
    cache_ttl: float
    fetched_at: Optional[float] = None
    latency: Optional[float] = None
    error: Optional[str] = None
