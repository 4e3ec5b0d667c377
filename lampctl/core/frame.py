"""Binary command frames for the streetlight controllers.

Every frame has the same envelope::

    68 | UID (6 bytes) | header | payload | checksum | 16

The header is a fixed byte sequence per command class, the checksum is the
low byte of the sum of every preceding byte. Frames are handed to the
downlink queue base64-encoded (see :func:`to_transport_payload`).
"""

from __future__ import annotations

import base64
import re
from datetime import datetime

from lampctl.core.errors import InvalidInputError
from lampctl.core.model import Action, Schedule, ScheduleSlot, TimeSync, TurnLight

START_BYTE = 0x68
END_BYTE = 0x16
UID_LENGTH = 12

TURN_LIGHT_HEADER = bytes.fromhex("680106F0002001")
TIME_SYNC_HEADER = bytes.fromhex("68010BF0002D")
SCHEDULE_HEADER = bytes.fromhex("680111F0002C010100000002")

LIGHT_ON = bytes((0x21, 0x64))
LIGHT_OFF = bytes((0x22, 0x00))
SLOT_MARKER = 0x23

_HEX_RE = re.compile(r"^[0-9A-F]+$")
_SLOT_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_WEEKDAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


def normalize_uid(data_uid: str) -> str:
    """Uppercase ``data_uid`` and left-pad it with ``0`` to 12 hex digits."""
    normalized = str(data_uid).strip().upper()
    if not normalized:
        raise InvalidInputError("Device UID must not be empty")
    if not _HEX_RE.match(normalized):
        raise InvalidInputError(f"Device UID '{data_uid}' must contain only hex digits")
    if len(normalized) > UID_LENGTH:
        raise InvalidInputError(
            f"Device UID '{data_uid}' is longer than {UID_LENGTH} hex digits"
        )
    return normalized.rjust(UID_LENGTH, "0")


def checksum(data: bytes) -> int:
    return sum(data) & 0xFF


def encode(action: Action, data_uid: str) -> bytes:
    """Build the complete frame for ``action`` addressed to ``data_uid``."""
    if isinstance(action, TurnLight):
        body = TURN_LIGHT_HEADER + _turn_light_payload(action)
    elif isinstance(action, TimeSync):
        body = TIME_SYNC_HEADER + _time_sync_payload(action)
    elif isinstance(action, Schedule):
        body = SCHEDULE_HEADER + _schedule_payload(action)
    else:
        raise InvalidInputError(f"Unsupported action type '{type(action).__name__}'")

    frame = bytes((START_BYTE,)) + bytes.fromhex(normalize_uid(data_uid)) + body
    return frame + bytes((checksum(frame), END_BYTE))


def to_transport_payload(frame: bytes) -> str:
    return base64.b64encode(frame).decode("ascii")


def describe(frame: bytes) -> str:
    return frame.hex().upper()


def _turn_light_payload(action: TurnLight) -> bytes:
    if action.on is True:
        return LIGHT_ON
    if action.on is False:
        return LIGHT_OFF
    raise InvalidInputError(f"Invalid light action '{action.on}'. Expected on or off.")


def _time_sync_payload(action: TimeSync) -> bytes:
    parts = str(action.timestamp).split()
    if len(parts) < 3:
        raise InvalidInputError(
            f"Invalid timestamp '{action.timestamp}'. Expected '<Weekday> <YYYY-MM-DD> <HH:MM:SS>'."
        )
    weekday_name, date_text, time_text = parts[:3]

    weekday = _weekday_index(weekday_name)
    try:
        moment = datetime.strptime(f"{date_text} {time_text}", "%Y-%m-%d %H:%M:%S")
    except ValueError as exc:
        raise InvalidInputError(f"Invalid date/time in timestamp '{action.timestamp}': {exc}") from exc

    century, year = divmod(moment.year, 100)
    return bytes(
        (
            moment.hour,
            moment.minute,
            moment.second,
            century,
            year,
            moment.month,
            moment.day,
            weekday,
        )
    )


def _weekday_index(name: str) -> int:
    lowered = name.strip().lower()
    for index, weekday in enumerate(_WEEKDAYS):
        if lowered == weekday or (len(lowered) == 3 and weekday.startswith(lowered)):
            return index
    raise InvalidInputError(f"Unrecognized weekday '{name}'")


def _schedule_payload(action: Schedule) -> bytes:
    return _slot_bytes(action.slot1, "slot1") + _slot_bytes(action.slot2, "slot2")


def _slot_bytes(slot: ScheduleSlot | None, name: str) -> bytes:
    if slot is None:
        raise InvalidInputError(f"Schedule is missing {name}")
    if not slot.time:
        raise InvalidInputError(f"Schedule {name} is missing its time")
    if slot.dim_level is None:
        raise InvalidInputError(f"Schedule {name} is missing its dim level")

    match = _SLOT_TIME_RE.match(slot.time.strip())
    if not match:
        raise InvalidInputError(f"Schedule {name} time '{slot.time}' must be HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidInputError(f"Schedule {name} time '{slot.time}' is out of range")

    try:
        dim_level = int(slot.dim_level)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Schedule {name} dim level '{slot.dim_level}' is not an integer") from exc
    if not 0 <= dim_level <= 0xFF:
        raise InvalidInputError(f"Schedule {name} dim level {dim_level} must be within 0-255")

    return bytes((hour, minute, SLOT_MARKER, dim_level))
