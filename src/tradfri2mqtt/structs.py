"""Data model shared by the gateway adapter, the projector and the bridge."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

__all__ = [
    "AirPurifierEntry",
    "BlindEntry",
    "DeviceEvent",
    "DeviceEventSource",
    "DeviceId",
    "DeviceInfo",
    "DeviceRemoved",
    "DeviceSnapshot",
    "DeviceType",
    "DeviceUpdated",
    "ErrorContext",
    "ErrorReporter",
    "LightEntry",
    "PlugEntry",
    "PublishSink",
    "SensorEntry",
]

DeviceId = int


class DeviceType(StrEnum):
    """Kinds of accessory the gateway reports. The value doubles as the topic segment."""

    LIGHTBULB = "lightbulb"
    PLUG = "plug"
    BLIND = "blind"
    AIR_PURIFIER = "air-purifier"
    MOTION_SENSOR = "motion-sensor"
    REMOTE = "remote"
    SLAVE_REMOTE = "slave-remote"
    SOUND_REMOTE = "sound-remote"
    SIGNAL_REPEATER = "signal-repeater"
    UNKNOWN = "unknown"

    @classmethod
    def from_token(cls, token: str) -> DeviceType:
        """Resolve a type token, mapping anything unrecognized to UNKNOWN."""
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    battery: int | None = None
    firmware_version: str | None = None
    model_number: str | None = None
    power: str | None = None


@dataclass(frozen=True, slots=True)
class LightEntry:
    on_off: bool | None = None
    power_factor: float | None = None
    color_temperature: float | None = None
    dimmer: float | None = None


@dataclass(frozen=True, slots=True)
class PlugEntry:
    on_off: bool | None = None
    power_factor: float | None = None
    dimmer: float | None = None


@dataclass(frozen=True, slots=True)
class BlindEntry:
    position: float | None = None
    trigger: float | None = None


@dataclass(frozen=True, slots=True)
class AirPurifierEntry:
    air_quality: int | None = None
    controls_locked: bool | None = None
    fan_mode: int | None = None
    fan_speed: int | None = None
    total_filter_lifetime: int | None = None
    filter_runtime: int | None = None
    filter_remaining_lifetime: int | None = None
    filter_status: int | None = None
    status_leds: bool | None = None
    total_motor_runtime: int | None = None


@dataclass(frozen=True, slots=True)
class SensorEntry:
    sensor_type: str | None = None
    min_measured_value: float | None = None
    max_measured_value: float | None = None
    min_range_value: float | None = None
    max_range_value: float | None = None
    reset_min_max_measure_value: bool | None = None
    sensor_value: float | None = None


@dataclass(frozen=True, slots=True)
class DeviceSnapshot:
    """Point-in-time view of one device.

    ``type_token`` is a :class:`DeviceType` value for recognized devices and the
    gateway's raw type token otherwise. ``last_seen`` is Unix epoch seconds.
    """

    instance_id: DeviceId | None
    type_token: str
    name: str | None = None
    alive: bool | None = None
    ota_update_state: int | None = None
    last_seen: int | None = None
    device_info: DeviceInfo = field(default_factory=DeviceInfo)
    lights: tuple[LightEntry, ...] = ()
    plugs: tuple[PlugEntry, ...] = ()
    blinds: tuple[BlindEntry, ...] = ()
    air_purifiers: tuple[AirPurifierEntry, ...] = ()
    sensors: tuple[SensorEntry, ...] = ()

    @property
    def device_type(self) -> DeviceType:
        return DeviceType.from_token(self.type_token)


@dataclass(frozen=True, slots=True)
class DeviceUpdated:
    snapshot: DeviceSnapshot


@dataclass(frozen=True, slots=True)
class DeviceRemoved:
    device_id: DeviceId


DeviceEvent = DeviceUpdated | DeviceRemoved


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """What was being done when a failure was reported."""

    component: str
    device_id: DeviceId | None = None
    key: str | None = None
    value: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "component": self.component,
            "device_id": self.device_id,
            "key": self.key,
            "value": self.value,
        }


class PublishSink(Protocol):
    """Destination for rendered attribute values."""

    async def publish(self, path: str, value: str) -> None:
        """Publish ``value`` under ``path``; raise :class:`PublishError` on failure."""
        ...

    async def stop(self) -> None: ...


class ErrorReporter(Protocol):
    def report(self, context: ErrorContext, cause: BaseException) -> None: ...


class DeviceEventSource(Protocol):
    """Producer of :data:`DeviceEvent` items, delivered in arrival order."""

    async def start(self, queue: asyncio.Queue[DeviceEvent | None]) -> None:
        """Begin observing devices and enqueue events as they arrive."""
        ...

    async def stop(self) -> None:
        """Stop observing; no event is enqueued after this returns."""
        ...
