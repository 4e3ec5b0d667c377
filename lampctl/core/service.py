"""Service layer used by CLI and the public client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from lampctl.core.config import load_settings
from lampctl.core.errors import InvalidInputError, TransportError
from lampctl.core.fetcher import fetch_device_data
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
from lampctl.core.resolver import resolve_devices
from lampctl.transports.base import DevicePlatform, DownlinkQueue
from lampctl.transports.chirpstack import ChirpStackQueue
from lampctl.transports.thingsboard import ThingsBoardClient

LOGGER = logging.getLogger(__name__)


class LampService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        platform: DevicePlatform | None = None,
        queue: DownlinkQueue | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or load_settings()
        self.platform = platform or ThingsBoardClient(self.settings.platform)
        self.queue = queue or ChirpStackQueue(self.settings.queue)
        self._sleep = sleep

    async def turn_light(self, asset_id: str, state: str | bool) -> DispatchReport:
        return await self.dispatch(asset_id, TurnLight.parse(state))

    async def time_sync(self, asset_id: str, timestamp: str | None = None) -> DispatchReport:
        action = TimeSync.now() if timestamp is None else TimeSync(timestamp=timestamp)
        return await self.dispatch(asset_id, action)

    async def schedule(
        self,
        asset_id: str,
        slot1: ScheduleSlot | None,
        slot2: ScheduleSlot | None,
    ) -> DispatchReport:
        return await self.dispatch(asset_id, Schedule(slot1=slot1, slot2=slot2))

    async def list_devices(self, asset_id: str) -> FetchResult:
        token = await self.platform.access_token()
        device_ids = await self._resolve(asset_id, token)
        return await self._fetch(device_ids, token)

    async def dispatch(
        self,
        asset_id: str,
        action: Action,
        *,
        stop: asyncio.Event | None = None,
    ) -> DispatchReport:
        """Send ``action`` to every device contained by ``asset_id``.

        Devices are handled one at a time with ``pacing_s`` seconds between
        consecutive submissions. Per-device failures are recorded in the
        report and never stop the loop. Authentication and resolve failures
        propagate. When ``stop`` is set, devices not yet started are reported
        as cancelled.
        """
        token = await self.platform.access_token()
        device_ids = await self._resolve(asset_id, token)
        if not device_ids:
            LOGGER.info("Asset %s has no devices, nothing to send", asset_id)
            return DispatchReport(asset_id=asset_id, action=action, outcomes=())

        fetched = await self._fetch(device_ids, token)
        outcomes: list[DeviceOutcome] = list(fetched.skipped)

        submitted = False
        for index, device in enumerate(fetched.devices):
            if stop is not None and stop.is_set():
                outcomes.extend(_cancelled(fetched.devices[index:]))
                LOGGER.warning(
                    "Dispatch for asset %s stopped with %d devices pending",
                    asset_id,
                    len(fetched.devices) - index,
                )
                break

            try:
                frame = encode(action, device.data_uid)
            except InvalidInputError as exc:
                LOGGER.warning(
                    "Could not encode %s for device %s: %s",
                    getattr(action, "kind", type(action).__name__),
                    device.device_id,
                    exc,
                )
                outcomes.append(_outcome(device, Outcome.INVALID_INPUT, detail=str(exc)))
                continue

            if submitted:
                await self._pause(stop)
                if stop is not None and stop.is_set():
                    outcomes.extend(_cancelled(fetched.devices[index:]))
                    break

            payload = to_transport_payload(frame)
            LOGGER.debug("Frame for device %s: %s", device.device_id, describe(frame))
            submitted = True
            try:
                await self.queue.enqueue(device.dev_eui, payload)
            except TransportError as exc:
                LOGGER.warning(
                    "Queue submission for device %s (%s) failed: %s",
                    device.device_id,
                    device.dev_eui,
                    exc,
                )
                outcomes.append(_outcome(device, Outcome.SUBMISSION_FAILED, payload=payload, detail=str(exc)))
                continue

            outcomes.append(_outcome(device, Outcome.SENT, payload=payload))

        return DispatchReport(asset_id=asset_id, action=action, outcomes=tuple(outcomes))

    async def _resolve(self, asset_id: str, token: str) -> list[str]:
        return await resolve_devices(
            self.platform,
            asset_id,
            token,
            max_level=self.settings.platform.max_level,
            fetch_last_level_only=self.settings.platform.fetch_last_level_only,
        )

    async def _fetch(self, device_ids: list[str], token: str) -> FetchResult:
        return await fetch_device_data(
            self.platform,
            device_ids,
            token,
            uid_key=self.settings.platform.uid_key,
            eui_key=self.settings.platform.eui_key,
        )

    async def _pause(self, stop: asyncio.Event | None) -> None:
        delay = self.settings.pacing_s
        if delay <= 0:
            return
        if stop is None:
            await self._sleep(delay)
            return
        try:
            await asyncio.wait_for(stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


def _outcome(
    device: Device,
    outcome: Outcome,
    *,
    payload: str | None = None,
    detail: str | None = None,
) -> DeviceOutcome:
    return DeviceOutcome(
        device_id=device.device_id,
        outcome=outcome,
        dev_eui=device.dev_eui,
        payload=payload,
        detail=detail,
    )


def _cancelled(devices: tuple[Device, ...]) -> list[DeviceOutcome]:
    return [_outcome(device, Outcome.CANCELLED) for device in devices]
