"""Error taxonomy for upstream sources."""

from __future__ import annotations


class SourceError(Exception):
    """Base class for source failures."""


class ConfigError(SourceError):
    """Missing credentials or configuration. Never retried."""


class FetchError(SourceError):
    """Transient upstream failure. Retried with backoff."""


class TransformError(SourceError):
    """Malformed upstream payload. Retried like a fetch failure."""


class UnitAmbiguousError(SourceError):
    """An upstream amount arrived without a unit label we can trust."""

    def __init__(self, field: str, unit: str | None) -> None:
        self.field = field
        self.unit = unit
        super().__init__(f"Cannot resolve unit {unit!r} for {field}")


class SourceUnavailableError(SourceError):
    """All attempts failed and no cached data exists."""

    def __init__(self, source_name: str, message: str) -> None:
        self.source_name = source_name
        self.message = message
        super().__init__(f"{source_name}: {message}")
