"""Credentials document (``auth.json``) written by the OAuth flow and read by sources."""

from __future__ import annotations

from typing import Any

from homeboard.store.state import StateDocument


class AuthStore:
    """Typed accessors over the auth document.

    Google tokens and selected calendars are written by an external OAuth
    collaborator; this project only reads them. The Ambient device MAC is
    discovered and stored here by the ambient source.
    """

    def __init__(self, document: StateDocument) -> None:
        self.document = document

    def _google(self) -> dict[str, Any]:
        google = self.document.get_key("google", {})
        return google if isinstance(google, dict) else {}

    def google_tokens(self) -> dict[str, Any] | None:
        tokens = self._google().get("tokens")
        return tokens if isinstance(tokens, dict) else None

    def google_access_token(self) -> str | None:
        tokens = self.google_tokens() or {}
        return tokens.get("access_token") or None

    def selected_calendars(self) -> list[str]:
        selected = self._google().get("selectedCalendars") or []
        return [str(cal_id) for cal_id in selected if cal_id]

    def ambient_device_mac(self) -> str | None:
        return self.document.get_key("ambient_device_mac") or None

    def store_ambient_device_mac(self, mac: str) -> None:
        self.document.set_key("ambient_device_mac", mac)
