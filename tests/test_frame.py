from __future__ import annotations

import base64
from datetime import datetime

import pytest

from lampctl.core.errors import InvalidInputError
from lampctl.core.frame import checksum, describe, encode, normalize_uid, to_transport_payload
from lampctl.core.model import Schedule, ScheduleSlot, TimeSync, TurnLight


def _assert_envelope(frame: bytes) -> None:
    assert frame[0] == 0x68
    assert frame[-1] == 0x16
    assert frame[-2] == sum(frame[:-2]) & 0xFF


def test_light_on_frame_pads_uid_to_six_bytes() -> None:
    # The UID field is always 6 bytes, so an 8-digit UID gains two leading zero bytes.
    frame = encode(TurnLight(on=True), "D7AA1090")
    assert describe(frame) == "680000D7AA1090680106F000200121648E16"
    assert len(frame) == 18
    _assert_envelope(frame)


def test_light_off_frame_pads_short_uid() -> None:
    frame = encode(TurnLight(on=False), "AB")
    assert frame[1:7] == bytes.fromhex("0000000000AB")
    assert describe(frame) == "680000000000AB680106F00020012200B516"


def test_uid_is_embedded_as_raw_uppercase_bytes() -> None:
    lower = encode(TurnLight(on=True), "a1b2c3d4e5f6")
    upper = encode(TurnLight(on=True), "A1B2C3D4E5F6")
    assert lower == upper
    assert lower[1:7] == bytes((0xA1, 0xB2, 0xC3, 0xD4, 0xE5, 0xF6))


def test_encoding_is_deterministic() -> None:
    action = Schedule(
        slot1=ScheduleSlot(time="18:30", dim_level=100),
        slot2=ScheduleSlot(time="23:00", dim_level=40),
    )
    assert encode(action, "0000D7AA1090") == encode(action, "0000D7AA1090")


def test_transport_payload_is_base64_of_frame() -> None:
    frame = encode(TurnLight(on=True), "0000D7AA1090")
    payload = to_transport_payload(frame)
    assert base64.b64decode(payload) == frame
    assert bytes.fromhex(frame.hex()) == frame


@pytest.mark.parametrize("uid", ["", "XYZ123", "0123456789ABC", "12 34"])
def test_invalid_uid_rejected(uid: str) -> None:
    with pytest.raises(InvalidInputError):
        encode(TurnLight(on=True), uid)


def test_normalize_uid() -> None:
    assert normalize_uid("ab") == "0000000000AB"
    assert normalize_uid(" 0000d7aa1090 ") == "0000D7AA1090"


def test_checksum_wraps_at_256() -> None:
    assert checksum(bytes([0xFF, 0x02])) == 0x01
    assert checksum(b"") == 0


def test_turn_light_without_boolean_state_rejected() -> None:
    with pytest.raises(InvalidInputError):
        encode(TurnLight(on="dim"), "0000D7AA1090")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("text", "expected"),
    [("on", True), ("Light On", True), ("OFF", False), ("Light Off", False), (True, True)],
)
def test_turn_light_parse(text: str | bool, expected: bool) -> None:
    assert TurnLight.parse(text).on is expected


@pytest.mark.parametrize("state", ["blinking", "", None, 1])
def test_turn_light_parse_rejects_unknown_state(state: object) -> None:
    with pytest.raises(InvalidInputError):
        TurnLight.parse(state)  # type: ignore[arg-type]


def test_time_sync_frame() -> None:
    frame = encode(TimeSync(timestamp="Monday 2024-03-18 09:05:07"), "0000000000AB")
    assert len(frame) == 23
    assert frame[7:13] == bytes.fromhex("68010BF0002D")
    assert frame[13:21] == bytes((9, 5, 7, 20, 24, 3, 18, 1))
    _assert_envelope(frame)


def test_time_sync_values_are_plain_binary_not_bcd() -> None:
    frame = encode(TimeSync(timestamp="Saturday 2099-12-31 23:59:58"), "0000000000AB")
    assert frame[13:21] == bytes((0x17, 0x3B, 0x3A, 0x14, 0x63, 0x0C, 0x1F, 0x06))


def test_time_sync_accepts_short_weekday_names() -> None:
    frame = encode(TimeSync(timestamp="sun 2024-03-17 00:00:00"), "0000000000AB")
    assert frame[20] == 0


def test_time_sync_from_datetime() -> None:
    action = TimeSync.from_datetime(datetime(2024, 3, 17, 6, 7, 8))
    assert action.timestamp == "Sunday 2024-03-17 06:07:08"
    assert encode(action, "AB")[13:21] == bytes((6, 7, 8, 20, 24, 3, 17, 0))


@pytest.mark.parametrize(
    "timestamp",
    [
        "",
        "Monday 2024-03-18",
        "Funday 2024-03-18 09:05:07",
        "Monday 2024-13-18 09:05:07",
        "Monday 2024-03-18 25:05:07",
        "Monday 18/03/2024 09:05:07",
    ],
)
def test_time_sync_invalid_timestamp(timestamp: str) -> None:
    with pytest.raises(InvalidInputError):
        encode(TimeSync(timestamp=timestamp), "0000000000AB")


def test_schedule_frame() -> None:
    action = Schedule(
        slot1=ScheduleSlot(time="18:30", dim_level=100),
        slot2=ScheduleSlot(time="5:00", dim_level=0),
    )
    frame = encode(action, "0000D7AA1090")
    assert len(frame) == 29
    assert frame[7:19] == bytes.fromhex("680111F0002C010100000002")
    assert frame[19:27] == bytes((18, 30, 0x23, 100, 5, 0, 0x23, 0))
    _assert_envelope(frame)


@pytest.mark.parametrize(
    "action",
    [
        Schedule(slot1=None, slot2=ScheduleSlot(time="23:00", dim_level=40)),
        Schedule(slot1=ScheduleSlot(time="18:30", dim_level=100), slot2=None),
        Schedule(slot1=ScheduleSlot(time=None, dim_level=100), slot2=ScheduleSlot(time="23:00", dim_level=40)),
        Schedule(slot1=ScheduleSlot(time="18:30", dim_level=None), slot2=ScheduleSlot(time="23:00", dim_level=40)),
        Schedule(slot1=ScheduleSlot(time="24:00", dim_level=100), slot2=ScheduleSlot(time="23:00", dim_level=40)),
        Schedule(slot1=ScheduleSlot(time="1830", dim_level=100), slot2=ScheduleSlot(time="23:00", dim_level=40)),
        Schedule(slot1=ScheduleSlot(time="18:30", dim_level=256), slot2=ScheduleSlot(time="23:00", dim_level=40)),
    ],
)
def test_schedule_invalid_input(action: Schedule) -> None:
    with pytest.raises(InvalidInputError):
        encode(action, "0000D7AA1090")
