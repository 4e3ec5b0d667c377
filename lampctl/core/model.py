"""Core data models used across the encoder, pipeline, transports, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

from lampctl.core.errors import InvalidInputError

_LIGHT_ON_WORDS = frozenset({"on", "light on", "true", "1"})
_LIGHT_OFF_WORDS = frozenset({"off", "light off", "false", "0"})


@dataclass(frozen=True)
class Device:
    device_id: str
    data_uid: str
    dev_eui: str


@dataclass(frozen=True)
class TurnLight:
    on: bool

    kind = "turn_light"

    @classmethod
    def parse(cls, state: str | bool) -> TurnLight:
        if isinstance(state, bool):
            return cls(on=state)
        if not isinstance(state, str):
            raise InvalidInputError(f"Invalid light action {state!r}. Expected 'on' or 'off'.")
        lowered = state.strip().lower()
        if lowered in _LIGHT_ON_WORDS:
            return cls(on=True)
        if lowered in _LIGHT_OFF_WORDS:
            return cls(on=False)
        raise InvalidInputError(f"Invalid light action '{state}'. Expected 'on' or 'off'.")


@dataclass(frozen=True)
class TimeSync:
    """Clock synchronization in ``"<Weekday> <YYYY-MM-DD> <HH:MM:SS>"`` form."""

    timestamp: str

    kind = "time_sync"

    @classmethod
    def from_datetime(cls, moment: datetime) -> TimeSync:
        return cls(timestamp=moment.strftime("%A %Y-%m-%d %H:%M:%S"))

    @classmethod
    def now(cls) -> TimeSync:
        return cls.from_datetime(datetime.now().astimezone())


@dataclass(frozen=True)
class ScheduleSlot:
    time: str | None
    dim_level: int | None


@dataclass(frozen=True)
class Schedule:
    slot1: ScheduleSlot | None
    slot2: ScheduleSlot | None

    kind = "schedule"


Action = Union[TurnLight, TimeSync, Schedule]


class Outcome(str, Enum):
    SENT = "sent"
    MISSING_DATA = "missing_data"
    FETCH_FAILED = "fetch_failed"
    INVALID_INPUT = "invalid_input"
    SUBMISSION_FAILED = "submission_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DeviceOutcome:
    device_id: str
    outcome: Outcome
    dev_eui: str | None = None
    payload: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class FetchResult:
    devices: tuple[Device, ...]
    skipped: tuple[DeviceOutcome, ...]


@dataclass(frozen=True)
class DispatchReport:
    """Per-device results of one dispatch invocation, in processing order."""

    asset_id: str
    action: Action
    outcomes: tuple[DeviceOutcome, ...]

    @property
    def sent(self) -> tuple[DeviceOutcome, ...]:
        return tuple(o for o in self.outcomes if o.outcome is Outcome.SENT)

    @property
    def pending(self) -> tuple[DeviceOutcome, ...]:
        return tuple(o for o in self.outcomes if o.outcome is Outcome.CANCELLED)

    @property
    def failed(self) -> tuple[DeviceOutcome, ...]:
        return tuple(
            o for o in self.outcomes if o.outcome not in (Outcome.SENT, Outcome.CANCELLED)
        )


@dataclass(frozen=True)
class PlatformSettings:
    url: str
    username: str
    password: str
    timeout_s: float = 10.0
    max_level: int = 1
    fetch_last_level_only: bool = False
    uid_key: str = "data_UID"
    eui_key: str = "dev_eui"


@dataclass(frozen=True)
class QueueSettings:
    url: str
    token: str
    timeout_s: float = 10.0
    f_port: int = 10
    confirmed: bool = False


@dataclass(frozen=True)
class Settings:
    platform: PlatformSettings
    queue: QueueSettings
    pacing_s: float = 6.0
