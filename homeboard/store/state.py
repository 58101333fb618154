"""Durable JSON state document shared by caches, statuses and daily highs."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any

logger = logging.getLogger("homeboard.state")


class StateDocument:
    """A single JSON document on disk, read-modify-written as a whole on every call.

    Last writer wins. I/O and decode failures are logged and never raised: a failed
    read behaves like an empty document, a failed write is dropped.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = Lock()

    def read(self) -> dict[str, Any]:
        try:
            if not self.path.exists():
                return {}
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Failed to read {self.path}: {exc}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object state document at {self.path}")
            return {}
        return data

    def write(self, data: dict[str, Any]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.warning(f"Failed to write {self.path}: {exc}")
            return False
        return True

    def get_key(self, key: str, default: Any = None) -> Any:
        return self.read().get(key, default)

    def set_key(self, key: str, value: Any) -> None:
        with self._lock:
            state = self.read()
            state[key] = value
            self.write(state)

    def get_item(self, section: str, key: str) -> Any:
        section_data = self.read().get(section)
        if not isinstance(section_data, dict):
            return None
        return section_data.get(key)

    def set_item(self, section: str, key: str, value: Any) -> None:
        """Set ``state[section][key]`` in one read-modify-write."""
        with self._lock:
            state = self.read()
            section_data = state.get(section)
            if not isinstance(section_data, dict):
                section_data = {}
            section_data[key] = value
            state[section] = section_data
            self.write(state)

    def delete_item(self, section: str, key: str) -> None:
        with self._lock:
            state = self.read()
            section_data = state.get(section)
            if not isinstance(section_data, dict) or key not in section_data:
                return
            del section_data[key]
            self.write(state)
