"""Transport interfaces."""

from __future__ import annotations

from typing import Any, Protocol


class DevicePlatform(Protocol):
    async def access_token(self) -> str:
        """Return a valid bearer token, logging in again when it has expired."""

    async def find_relations(self, query: dict[str, Any], token: str) -> list[dict[str, Any]]:
        """Run an entity relation query and return the raw relation records."""

    async def latest_telemetry(self, device_id: str, key: str, token: str) -> str | None:
        """Return the most recent time series value for ``key``, or ``None``."""

    async def latest_attribute(self, device_id: str, key: str, token: str) -> str | None:
        """Return the value of attribute ``key``, or ``None``."""


class DownlinkQueue(Protocol):
    async def enqueue(self, dev_eui: str, data: str) -> Any:
        """Queue a base64 payload for ``dev_eui`` and return the response body."""
