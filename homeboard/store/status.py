"""Source status registry kept in the ``service_status`` section of the state document."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from homeboard.models.status import PersistedStatus
from homeboard.store.state import StateDocument

logger = logging.getLogger("homeboard.status")

STATUS_SECTION = "service_status"


class SourceStatusRegistry:
    """Pure storage for the last known ``{state, latency, error}`` of each source."""

    def __init__(self, state: StateDocument) -> None:
        self.state = state

    def record_status(self, key: str, status: PersistedStatus) -> None:
        self.state.set_item(STATUS_SECTION, key, status.model_dump(mode="json"))

    def read_status(self, key: str) -> PersistedStatus:
        return self._parse(key, self.state.get_item(STATUS_SECTION, key))

    def read_all(self) -> dict[str, PersistedStatus]:
        section = self.state.get_key(STATUS_SECTION, {})
        if not isinstance(section, dict):
            return {}
        return {key: self._parse(key, raw) for key, raw in section.items()}

    @staticmethod
    def _parse(key: str, raw: object) -> PersistedStatus:
        if not isinstance(raw, dict):
            return PersistedStatus()
        try:
            return PersistedStatus.model_validate(raw)
        except ValidationError as exc:
            logger.warning(f"Ignoring malformed status for {key}: {exc.error_count()} errors")
            return PersistedStatus()
