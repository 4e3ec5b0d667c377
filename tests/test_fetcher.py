from __future__ import annotations

import asyncio

from lampctl.core.errors import TransportTimeoutError
from lampctl.core.fetcher import fetch_device_data
from lampctl.core.model import Device, Outcome


class FakeStatePlatform:
    def __init__(
        self,
        uids: dict[str, str],
        euis: dict[str, str],
        failing: tuple[str, ...] = (),
    ) -> None:
        self.uids = uids
        self.euis = euis
        self.failing = failing
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def latest_telemetry(self, device_id: str, key: str, token: str) -> str | None:
        await self._enter()
        if device_id in self.failing:
            raise TransportTimeoutError(f"telemetry for {device_id} timed out")
        return self.uids.get(device_id)

    async def latest_attribute(self, device_id: str, key: str, token: str) -> str | None:
        await self._enter()
        return self.euis.get(device_id)


def test_fetch_normalizes_uid_and_keeps_order() -> None:
    platform = FakeStatePlatform(
        uids={"dev-1": "ab", "dev-2": "0000d7aa1090"},
        euis={"dev-1": "70b3d57ed0000001", "dev-2": "70b3d57ed0000002"},
    )
    result = asyncio.run(fetch_device_data(platform, ["dev-2", "dev-1"], "tb-token"))
    assert result.devices == (
        Device(device_id="dev-2", data_uid="0000D7AA1090", dev_eui="70b3d57ed0000002"),
        Device(device_id="dev-1", data_uid="0000000000AB", dev_eui="70b3d57ed0000001"),
    )
    assert result.skipped == ()


def test_fetch_drops_devices_with_missing_data() -> None:
    platform = FakeStatePlatform(
        uids={"dev-1": "AB", "dev-3": "CD"},
        euis={"dev-1": "70b3d57ed0000001", "dev-2": "70b3d57ed0000002"},
    )
    result = asyncio.run(fetch_device_data(platform, ["dev-1", "dev-2", "dev-3"], "tb-token"))
    assert [d.device_id for d in result.devices] == ["dev-1"]
    assert [(s.device_id, s.outcome) for s in result.skipped] == [
        ("dev-2", Outcome.MISSING_DATA),
        ("dev-3", Outcome.MISSING_DATA),
    ]
    assert "data_UID" in (result.skipped[0].detail or "")
    assert "dev_eui" in (result.skipped[1].detail or "")


def test_blank_uid_is_missing_and_non_hex_uid_is_rejected() -> None:
    platform = FakeStatePlatform(
        uids={"dev-1": "   ", "dev-2": "not-hex", "dev-3": " ab "},
        euis={"dev-1": "70b3d57ed0000001", "dev-2": "70b3d57ed0000002", "dev-3": "70b3d57ed0000003"},
    )
    result = asyncio.run(fetch_device_data(platform, ["dev-1", "dev-2", "dev-3"], "tb-token"))
    assert result.devices == (
        Device(device_id="dev-3", data_uid="0000000000AB", dev_eui="70b3d57ed0000003"),
    )
    assert [(s.device_id, s.outcome) for s in result.skipped] == [
        ("dev-1", Outcome.MISSING_DATA),
        ("dev-2", Outcome.INVALID_INPUT),
    ]


def test_fetch_failure_is_isolated_per_device() -> None:
    platform = FakeStatePlatform(
        uids={"dev-1": "AB", "dev-2": "CD"},
        euis={"dev-1": "70b3d57ed0000001", "dev-2": "70b3d57ed0000002"},
        failing=("dev-1",),
    )
    result = asyncio.run(fetch_device_data(platform, ["dev-1", "dev-2"], "tb-token"))
    assert [d.device_id for d in result.devices] == ["dev-2"]
    assert result.skipped[0].outcome is Outcome.FETCH_FAILED


def test_fetch_runs_devices_concurrently() -> None:
    ids = [f"dev-{i}" for i in range(4)]
    platform = FakeStatePlatform(
        uids={i: "AB" for i in ids},
        euis={i: "70b3d57ed0000001" for i in ids},
    )
    asyncio.run(fetch_device_data(platform, ids, "tb-token"))
    assert platform.max_in_flight == 2 * len(ids)


def test_fetch_with_no_devices() -> None:
    result = asyncio.run(fetch_device_data(FakeStatePlatform({}, {}), [], "tb-token"))
    assert result.devices == ()
    assert result.skipped == ()
