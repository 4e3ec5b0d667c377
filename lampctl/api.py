"""Stable public API for building tooling on top of lampctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from lampctl.core.config import load_settings
from lampctl.core.errors import (
    AuthenticationError,
    ConfigError,
    InvalidInputError,
    LampctlError,
    MissingDeviceDataError,
    ResolveError,
    SubmissionError,
    TransportError,
    TransportTimeoutError,
)
from lampctl.core.frame import describe, encode, to_transport_payload
from lampctl.core.model import (
    Action,
    Device,
    DeviceOutcome,
    DispatchReport,
    FetchResult,
    Outcome,
    Schedule,
    ScheduleSlot,
    Settings,
    TimeSync,
    TurnLight,
)
from lampctl.core.service import LampService
from lampctl.transports.base import DevicePlatform, DownlinkQueue

__all__ = [
    "LampctlError",
    "AuthenticationError",
    "ConfigError",
    "InvalidInputError",
    "MissingDeviceDataError",
    "ResolveError",
    "SubmissionError",
    "TransportError",
    "TransportTimeoutError",
    "Action",
    "Device",
    "DeviceOutcome",
    "DispatchReport",
    "FetchResult",
    "Outcome",
    "Schedule",
    "ScheduleSlot",
    "Settings",
    "TimeSync",
    "TurnLight",
    "FramePreview",
    "preview_frame",
    "Client",
]


@dataclass(frozen=True)
class FramePreview:
    """A frame built offline, in the forms the CLI and logs show."""

    action: Action
    data_uid: str
    frame: bytes

    @property
    def hex(self) -> str:
        return describe(self.frame)

    @property
    def payload(self) -> str:
        return to_transport_payload(self.frame)


def preview_frame(action: Action, data_uid: str) -> FramePreview:
    return FramePreview(action=action, data_uid=data_uid, frame=encode(action, data_uid))


class Client:
    """Public client for sending streetlight commands to the devices of an asset.

    Each call runs one pipeline invocation to completion. The platform token
    is cached on the client and reused across calls until it expires.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        config_path: str | Path | None = None,
        platform: DevicePlatform | None = None,
        queue: DownlinkQueue | None = None,
    ) -> None:
        if settings is None:
            settings = load_settings(config_path)
        self._service = LampService(settings, platform=platform, queue=queue)

    @property
    def settings(self) -> Settings:
        return self._service.settings

    def turn_light(self, asset_id: str, state: str | bool) -> DispatchReport:
        return asyncio.run(self._service.turn_light(asset_id, state))

    def time_sync(self, asset_id: str, timestamp: str | None = None) -> DispatchReport:
        return asyncio.run(self._service.time_sync(asset_id, timestamp))

    def schedule(
        self,
        asset_id: str,
        slot1: ScheduleSlot | None,
        slot2: ScheduleSlot | None,
    ) -> DispatchReport:
        return asyncio.run(self._service.schedule(asset_id, slot1, slot2))

    def dispatch(self, asset_id: str, action: Action) -> DispatchReport:
        return asyncio.run(self._service.dispatch(asset_id, action))

    def list_devices(self, asset_id: str) -> FetchResult:
        return asyncio.run(self._service.list_devices(asset_id))
