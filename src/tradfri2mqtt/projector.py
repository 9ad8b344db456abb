"""Flatten a device snapshot into ordered (key, value, base path) triples.

Which attributes are published for a device type is data, not code: see
:data:`TYPE_INTERESTS`. Supporting a new accessory means adding a sub-list to
:class:`~tradfri2mqtt.structs.DeviceSnapshot` and an entry to that table.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from operator import attrgetter
from typing import Any, NamedTuple

from tradfri2mqtt.exceptions import MalformedSnapshotError
from tradfri2mqtt.logging_abstraction import get_logger
from tradfri2mqtt.paths import build_base_path
from tradfri2mqtt.structs import DeviceSnapshot, DeviceType
from tradfri2mqtt.utils import epoch_to_iso, render_value

logger = get_logger(__name__)

Field = tuple[str, Callable[[Any], object]]


class ProjectedAttribute(NamedTuple):
    key: str
    value: str
    base_path: str


class TypeInterest(NamedTuple):
    """A snapshot sub-list and the attributes read from each of its entries, in order."""

    entries: Callable[[DeviceSnapshot], Sequence[Any]]
    fields: tuple[Field, ...]


def _fields(*pairs: tuple[str, str]) -> tuple[Field, ...]:
    return tuple((key, attrgetter(attr)) for key, attr in pairs)


CORE_FIELDS: tuple[Field, ...] = _fields(
    ("instanceId", "instance_id"),
    ("name", "name"),
    ("alive", "alive"),
    ("otaUpdateState", "ota_update_state"),
    ("type", "type_token"),
)

DEVICE_INFO_FIELDS: tuple[Field, ...] = _fields(
    ("battery", "device_info.battery"),
    ("firmwareVersion", "device_info.firmware_version"),
    ("modelNumber", "device_info.model_number"),
    ("power", "device_info.power"),
)

TYPE_INTERESTS: dict[DeviceType, TypeInterest] = {
    DeviceType.BLIND: TypeInterest(
        attrgetter("blinds"),
        _fields(("position", "position"), ("trigger", "trigger")),
    ),
    DeviceType.AIR_PURIFIER: TypeInterest(
        attrgetter("air_purifiers"),
        _fields(
            ("airQuality", "air_quality"),
            ("controlsLocked", "controls_locked"),
            ("fanMode", "fan_mode"),
            ("fanSpeed", "fan_speed"),
            ("totalFilterLifetime", "total_filter_lifetime"),
            ("filterRuntime", "filter_runtime"),
            ("filterRemainingLifetime", "filter_remaining_lifetime"),
            ("filterStatus", "filter_status"),
            ("statusLEDs", "status_leds"),
            ("totalMotorRuntime", "total_motor_runtime"),
        ),
    ),
    DeviceType.LIGHTBULB: TypeInterest(
        attrgetter("lights"),
        _fields(
            ("onOff", "on_off"),
            ("powerFactor", "power_factor"),
            ("colorTemperature", "color_temperature"),
            ("dimmer", "dimmer"),
        ),
    ),
    DeviceType.MOTION_SENSOR: TypeInterest(
        attrgetter("sensors"),
        _fields(
            ("sensorType", "sensor_type"),
            ("minMeasuredValue", "min_measured_value"),
            ("maxMeasuredValue", "max_measured_value"),
            ("minRangeValue", "min_range_value"),
            ("maxRangeValue", "max_range_value"),
            ("resetMinMaxMeasureValue", "reset_min_max_measure_value"),
            ("sensorValue", "sensor_value"),
        ),
    ),
    DeviceType.PLUG: TypeInterest(
        attrgetter("plugs"),
        _fields(("onOff", "on_off"), ("powerFactor", "power_factor"), ("dimmer", "dimmer")),
    ),
}


class DeviceProjector:
    """Turns a :class:`DeviceSnapshot` into the attributes to feed the publisher."""

    lp: str = "projector:"

    def __init__(self, topic_prefix: str) -> None:
        self.topic_prefix: str = topic_prefix

    def project(self, snapshot: DeviceSnapshot) -> list[ProjectedAttribute]:
        """Return every attribute of ``snapshot`` in publish order.

        Core fields first, then ``lastSeen``, then device info, then each
        entry of the type-specific sub-list.

        Raises:
            MalformedSnapshotError: The snapshot has no instance id.

        """
        lp = f"{self.lp}project:"
        if snapshot.instance_id is None:
            msg = "snapshot has no instance id"
            raise MalformedSnapshotError(msg)

        device_type = snapshot.device_type
        base_path = build_base_path(self.topic_prefix, snapshot.type_token, snapshot.instance_id)

        attributes = [ProjectedAttribute(key, render_value(get(snapshot)), base_path) for key, get in CORE_FIELDS]
        attributes.append(ProjectedAttribute("lastSeen", epoch_to_iso(snapshot.last_seen), base_path))
        attributes.extend(
            ProjectedAttribute(key, render_value(get(snapshot)), base_path) for key, get in DEVICE_INFO_FIELDS
        )

        interest = TYPE_INTERESTS.get(device_type)
        if interest is not None:
            for entry in interest.entries(snapshot):
                attributes.extend(
                    ProjectedAttribute(key, render_value(get(entry)), base_path) for key, get in interest.fields
                )
        elif device_type is DeviceType.UNKNOWN:
            logger.info(
                "%s device %s has unrecognized type %r, publishing core attributes only",
                lp,
                snapshot.instance_id,
                snapshot.type_token,
                extra={"device_id": snapshot.instance_id, "type_token": snapshot.type_token},
            )
        return attributes
