"""Resilient source base class: caching, retry with backoff, stale fallback and status tracking."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

import httpx
from pydantic import TypeAdapter, ValidationError

from homeboard.models.status import DataOrigin, PersistedStatus, SourceState, SourceStatus
from homeboard.observability.metrics import SourceMetrics, metrics as default_metrics
from homeboard.sources.errors import ConfigError, FetchError, SourceUnavailableError, TransformError
from homeboard.store.cache import CacheEntry, CacheStore
from homeboard.store.status import SourceStatusRegistry

logger = logging.getLogger("homeboard.sources")

T = TypeVar("T")
C = TypeVar("C")

MAX_BACKOFF_SECONDS = 10.0
BACKOFF_JITTER_SECONDS = 0.2

# Failures raised by fetch_raw that are worth another attempt.
RETRYABLE_FETCH_ERRORS = (FetchError, httpx.HTTPError, TimeoutError, ConnectionError, ValueError)


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T


@dataclass(frozen=True)
class Retryable:
    error: Exception


@dataclass(frozen=True)
class Fatal:
    error: Exception


AttemptOutcome = Union[Ok, Retryable, Fatal]


@dataclass
class SourceResult(Generic[T]):
    """Result of ``get_data``: the record, where it came from, and the resulting status."""

    data: Optional[T]
    origin: DataOrigin
    status: SourceStatus


def backoff_delay(retry: int, base_cooldown: float, rng: random.Random | None = None) -> float:
    """Delay before retry ``retry`` (1-based): exponential, jittered by up to 200ms, capped at 10s."""
    jitter = (rng or random).uniform(0, BACKOFF_JITTER_SECONDS)
    delay = base_cooldown * (2 ** (retry - 1)) + jitter
    return min(delay, MAX_BACKOFF_SECONDS)


def _malformed(exc: Exception) -> TransformError:
    error = TransformError(f"Malformed payload: {type(exc).__name__}: {exc}")
    error.__cause__ = exc
    return error


class ResilientSource(ABC, Generic[T, C]):
    """Abstract base class for all upstream sources.

    Subclasses implement ``fetch_raw`` (I/O) and ``transform`` (pure), and may
    override ``is_enabled`` and ``cache_signature``. ``get_data`` resolves a
    request in order: fresh cache, live fetch with retries, stale cache, failure.
    """

    name: str = "Unnamed"
    cache_key: str = ""
    record_type: Any = Any
    default_cache_minutes: float = 15
    default_retry_attempts: int = 3
    default_retry_cooldown: float = 1.0

    def __init__(
        self,
        cache: CacheStore,
        registry: SourceStatusRegistry,
        *,
        cache_ttl: float | None = None,
        retry_attempts: int | None = None,
        retry_cooldown: float | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
        metrics: SourceMetrics | None = None,
    ) -> None:
        self.cache = cache
        self.registry = registry
        self.cache_key = self.cache_key or self.name.lower()
        self.cache_ttl = cache_ttl if cache_ttl is not None else self.default_cache_minutes * 60
        self.retry_attempts = max(1, retry_attempts or self.default_retry_attempts)
        self.retry_cooldown = retry_cooldown if retry_cooldown is not None else self.default_retry_cooldown
        self.clock = clock
        self.sleep = sleep
        self.rng = rng
        self.metrics = metrics or default_metrics
        self._adapter = TypeAdapter(self.record_type)

    # ── Subclass hooks ───────────────────────────────────────

    def is_enabled(self) -> bool:
        """True if the source has the credentials it needs."""
        return True

    @abstractmethod
    async def fetch_raw(self, config: C) -> Any:
        """Fetch the raw upstream payload."""
        ...

    @abstractmethod
    def transform(self, raw: Any, config: C) -> T:
        """Normalize a raw payload into the cached record. No I/O."""
        ...

    def cache_signature(self, config: C) -> str | None:
        return None

    # ── Cache ────────────────────────────────────────────────

    def peek_cache(self, config: C, allow_stale: bool = True) -> T | None:
        """Return the cached record without fetching (signature still has to match)."""
        return self._cached_data(self.cache_signature(config), allow_stale=allow_stale)

    def clear_cache(self) -> None:
        self.cache.delete(self.cache_key)

    def _cached_data(self, signature: str | None, allow_stale: bool) -> T | None:
        entry = self.cache.get(self.cache_key)
        if entry is None or not entry.matches(signature):
            return None
        if not allow_stale and not entry.is_fresh(self.clock(), self.cache_ttl):
            return None
        try:
            return self._adapter.validate_python(entry.data)
        except ValidationError as exc:
            logger.warning(
                f"[{self.name}] Cached data no longer validates, ignoring it ({exc.error_count()} errors)",
                extra={"source": self.cache_key},
            )
            return None

    def _write_cache(self, data: T, signature: str | None) -> None:
        payload = self._adapter.dump_python(data, mode="json")
        self.cache.set(self.cache_key, CacheEntry(data=payload, fetched_at=self.clock(), signature=signature))

    # ── Status ───────────────────────────────────────────────

    def _save_status(self, state: SourceState, latency: float | None, error: str | None) -> None:
        self.registry.record_status(self.cache_key, PersistedStatus(state=state, latency=latency, error=error))

    def get_status(self) -> SourceStatus:
        saved = self.registry.read_status(self.cache_key)
        is_enabled = self.is_enabled()
        fetched_at = self.cache.fetched_at(self.cache_key)

        state = saved.state
        if state == SourceState.UNKNOWN:
            if not is_enabled:
                state = SourceState.DISABLED
            elif fetched_at is None:
                state = SourceState.PENDING

        return SourceStatus(
            name=self.name,
            is_enabled=is_enabled,
            state=state,
            cache_ttl=self.cache_ttl,
            fetched_at=fetched_at,
            latency=saved.latency,
            error=saved.error,
        )

    # ── Orchestration ────────────────────────────────────────

    async def _attempt(self, config: C) -> tuple[AttemptOutcome, float | None]:
        """Run one fetch + transform and classify the outcome. Returns (outcome, fetch latency ms)."""
        started = time.perf_counter()
        latency_ms: float | None = None
        try:
            raw = await self.fetch_raw(config)
            latency_ms = (time.perf_counter() - started) * 1000
            data = self.transform(raw, config)
        except ConfigError as exc:
            outcome: AttemptOutcome = Fatal(exc)
        except TransformError as exc:
            outcome = Retryable(exc)
        except RETRYABLE_FETCH_ERRORS as exc:
            outcome = Retryable(exc if latency_ms is None else _malformed(exc))
        except Exception as exc:
            # Anything else from fetch_raw is an upstream failure, from transform a bad payload.
            if latency_ms is None and not isinstance(exc, (KeyError, TypeError)):
                error: Exception = FetchError(f"Unexpected {type(exc).__name__}: {exc}")
                error.__cause__ = exc
            else:
                error = _malformed(exc)
            outcome = Retryable(error)
        else:
            outcome = Ok(data)

        label = "ok" if isinstance(outcome, Ok) else "fatal" if isinstance(outcome, Fatal) else "retryable"
        self.metrics.observe_attempt(self.cache_key, label, (time.perf_counter() - started) * 1000)
        return outcome, latency_ms

    async def get_data(self, config: C) -> SourceResult[T]:
        saved = self.registry.read_status(self.cache_key)
        log_extra = {"source": self.cache_key}

        if not self.is_enabled():
            self._save_status(SourceState.DISABLED, saved.latency, saved.error)
            logger.debug(f"[{self.name}] Disabled, skipping fetch", extra=log_extra)
            return SourceResult(data=None, origin=DataOrigin.DISABLED, status=self.get_status())

        signature = self.cache_signature(config)

        cached = self._cached_data(signature, allow_stale=False)
        if cached is not None:
            logger.info(f"[{self.name}] Using valid cache", extra=log_extra)
            # latency is left alone so it keeps describing the last real API call
            self._save_status(SourceState.HEALTHY, saved.latency, saved.error)
            return SourceResult(data=cached, origin=DataOrigin.CACHE, status=self.get_status())

        last_error: Exception | None = None
        for attempt in range(1, self.retry_attempts + 1):
            if attempt > 1:
                delay = backoff_delay(attempt - 1, self.retry_cooldown, self.rng)
                logger.warning(
                    f"[{self.name}] Retry attempt {attempt}/{self.retry_attempts} after {delay:.2f}s",
                    extra={**log_extra, "attempt": attempt},
                )
                await self.sleep(delay)

            outcome, latency_ms = await self._attempt(config)

            if isinstance(outcome, Ok):
                self._write_cache(outcome.data, signature)
                self._save_status(SourceState.HEALTHY, latency_ms, None)
                logger.info(
                    f"[{self.name}] Fetched successfully from API",
                    extra={**log_extra, "latency_ms": round(latency_ms or 0.0, 1)},
                )
                return SourceResult(data=outcome.data, origin=DataOrigin.API, status=self.get_status())

            last_error = outcome.error
            logger.warning(
                f"[{self.name}] Attempt {attempt} failed: {type(last_error).__name__}: {last_error}",
                extra={**log_extra, "attempt": attempt},
            )
            if isinstance(outcome, Fatal):
                break

        message = str(last_error) or type(last_error).__name__

        stale = self._cached_data(signature, allow_stale=True)
        if stale is not None:
            logger.warning(f"[{self.name}] API failed, using stale cache. Error: {message}", extra=log_extra)
            self._save_status(SourceState.DEGRADED, saved.latency, message)
            return SourceResult(data=stale, origin=DataOrigin.STALE_CACHE, status=self.get_status())

        logger.error(f"[{self.name}] API failed with no cache fallback: {message}", extra=log_extra)
        self._save_status(SourceState.UNHEALTHY, None, message)
        raise SourceUnavailableError(self.name, message) from last_error
