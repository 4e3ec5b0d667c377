"""Concurrent retrieval of the per-device state a frame needs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from lampctl.core.errors import InvalidInputError, MissingDeviceDataError, TransportError
from lampctl.core.frame import normalize_uid
from lampctl.core.model import Device, DeviceOutcome, FetchResult, Outcome
from lampctl.transports.base import DevicePlatform

LOGGER = logging.getLogger(__name__)


async def fetch_device_data(
    platform: DevicePlatform,
    device_ids: Sequence[str],
    token: str,
    *,
    uid_key: str = "data_UID",
    eui_key: str = "dev_eui",
) -> FetchResult:
    """Fetch UID telemetry and EUI attribute for every device concurrently.

    Devices with missing data or a failed lookup are reported in
    ``FetchResult.skipped`` and never abort the others.
    """
    results = await asyncio.gather(
        *(
            _fetch_one(platform, device_id, token, uid_key=uid_key, eui_key=eui_key)
            for device_id in device_ids
        )
    )

    devices: list[Device] = []
    skipped: list[DeviceOutcome] = []
    for result in results:
        if isinstance(result, Device):
            devices.append(result)
        else:
            skipped.append(result)
    return FetchResult(devices=tuple(devices), skipped=tuple(skipped))


async def _fetch_one(
    platform: DevicePlatform,
    device_id: str,
    token: str,
    *,
    uid_key: str,
    eui_key: str,
) -> Device | DeviceOutcome:
    try:
        data_uid, dev_eui = await asyncio.gather(
            platform.latest_telemetry(device_id, uid_key, token),
            platform.latest_attribute(device_id, eui_key, token),
            return_exceptions=True,
        )
        for result in (data_uid, dev_eui):
            if isinstance(result, BaseException):
                raise result
        data_uid = (data_uid or "").strip()
        dev_eui = (dev_eui or "").strip()
        if not data_uid:
            raise MissingDeviceDataError(f"No {uid_key} telemetry for device {device_id}")
        if not dev_eui:
            raise MissingDeviceDataError(f"No {eui_key} attribute for device {device_id}")
    except MissingDeviceDataError as exc:
        LOGGER.warning("%s", exc)
        return DeviceOutcome(device_id=device_id, outcome=Outcome.MISSING_DATA, detail=str(exc))
    except TransportError as exc:
        LOGGER.warning("Fetching state for device %s failed: %s", device_id, exc)
        return DeviceOutcome(device_id=device_id, outcome=Outcome.FETCH_FAILED, detail=str(exc))

    try:
        normalized_uid = normalize_uid(data_uid)
    except InvalidInputError as exc:
        LOGGER.warning("Device %s reported an unusable UID: %s", device_id, exc)
        return DeviceOutcome(
            device_id=device_id,
            outcome=Outcome.INVALID_INPUT,
            dev_eui=dev_eui,
            detail=str(exc),
        )

    return Device(device_id=device_id, data_uid=normalized_uid, dev_eui=dev_eui)
