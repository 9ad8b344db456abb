"""TRÅDFRI gateway event source.

Talks CoAP over DTLS through pytradfri, observes the device list and every
device resource, and turns raw IPSO payloads into
:class:`~tradfri2mqtt.structs.DeviceSnapshot` events on the bridge queue.

The gateway encodes fields under numeric IPSO keys and reports some values in
device units (dimmer 0-254, colour temperature in mireds, flags as 0/1).
:func:`snapshot_from_payload` normalises all of that so the bridge only sees
percentages and booleans.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator, Mapping
from functools import partial
from itertools import count
from typing import TYPE_CHECKING, Any

from pytradfri.command import Command
from pytradfri.const import (
    ATTR_AIR_PURIFIER_AIR_QUALITY,
    ATTR_AIR_PURIFIER_CONTROLS_LOCKED,
    ATTR_AIR_PURIFIER_FAN_SPEED,
    ATTR_AIR_PURIFIER_FILTER_LIFETIME_REMAINING,
    ATTR_AIR_PURIFIER_FILTER_LIFETIME_TOTAL,
    ATTR_AIR_PURIFIER_FILTER_RUNTIME,
    ATTR_AIR_PURIFIER_FILTER_STATUS,
    ATTR_AIR_PURIFIER_LEDS_OFF,
    ATTR_AIR_PURIFIER_MODE,
    ATTR_AIR_PURIFIER_MOTOR_RUNTIME_TOTAL,
    ATTR_APPLICATION_TYPE,
    ATTR_BLIND_CURRENT_POSITION,
    ATTR_BLIND_TRIGGER,
    ATTR_DEVICE_BATTERY,
    ATTR_DEVICE_FIRMWARE_VERSION,
    ATTR_DEVICE_INFO,
    ATTR_DEVICE_MODEL_NUMBER,
    ATTR_DEVICE_POWER_SOURCE,
    ATTR_DEVICE_STATE,
    ATTR_GATEWAY_FACTORY_DEFAULTS_MIN_MAX_MSR,
    ATTR_ID,
    ATTR_LAST_SEEN,
    ATTR_LIGHT_CONTROL,
    ATTR_LIGHT_DIMMER,
    ATTR_LIGHT_MIREDS,
    ATTR_NAME,
    ATTR_OTA_UPDATE_STATE,
    ATTR_REACHABLE_STATE,
    ATTR_SENSOR,
    ATTR_SENSOR_MAX_MEASURED_VALUE,
    ATTR_SENSOR_MAX_RANGE_VALUE,
    ATTR_SENSOR_MIN_MEASURED_VALUE,
    ATTR_SENSOR_MIN_RANGE_VALUE,
    ATTR_SENSOR_TYPE,
    ATTR_SENSOR_VALUE,
    ATTR_START_BLINDS,
    ATTR_SWITCH_PLUG,
    ATTR_SWITCH_POWER_FACTOR,
    RANGE_BRIGHTNESS,
    RANGE_MIREDS,
    ROOT_AIR_PURIFIER,
    ROOT_DEVICES,
)
from pytradfri.error import PytradfriError

from tradfri2mqtt.const import GATEWAY_OBSERVE_TASK_NAME
from tradfri2mqtt.exceptions import GatewayError
from tradfri2mqtt.logging_abstraction import get_logger
from tradfri2mqtt.structs import (
    AirPurifierEntry,
    BlindEntry,
    DeviceEvent,
    DeviceId,
    DeviceInfo,
    DeviceRemoved,
    DeviceSnapshot,
    DeviceType,
    DeviceUpdated,
    LightEntry,
    PlugEntry,
    SensorEntry,
)
from tradfri2mqtt.utils import scale_to_percent

if TYPE_CHECKING:
    from pytradfri.api.aiocoap_api import APIFactory

logger = get_logger(__name__)

APPLICATION_TYPES: dict[int, DeviceType] = {
    0: DeviceType.REMOTE,
    1: DeviceType.SLAVE_REMOTE,
    2: DeviceType.LIGHTBULB,
    3: DeviceType.PLUG,
    4: DeviceType.MOTION_SENSOR,
    6: DeviceType.SIGNAL_REPEATER,
    7: DeviceType.BLIND,
    8: DeviceType.SOUND_REMOTE,
    10: DeviceType.AIR_PURIFIER,
}

POWER_SOURCES: dict[int, str] = {
    1: "internal_battery",
    2: "external_battery",
    3: "battery",
    4: "power_over_ethernet",
    5: "usb",
    6: "ac_power",
    7: "solar",
}


def _int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _flag(value: Any) -> bool | None:
    """Gateway flags arrive as 0/1."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    number = _int(value)
    return None if number is None else number != 0


def _str(value: Any) -> str | None:
    return None if value is None else str(value)


def _entries(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    """Return a sub-list of the payload, wrapping a lone object some firmwares send instead of a list."""
    raw = payload.get(key)
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        raw = [raw]
    return [entry for entry in raw if isinstance(entry, Mapping)]


def type_token_for(raw_type: Any) -> str:
    """Map the gateway's application type to a :class:`DeviceType` value, or keep the raw token."""
    if raw_type is None:
        return DeviceType.UNKNOWN.value
    number = _int(raw_type)
    if number is not None and number in APPLICATION_TYPES:
        return APPLICATION_TYPES[number].value
    return str(raw_type)


def _light(entry: Mapping[str, Any]) -> LightEntry:
    mireds = _float(entry.get(ATTR_LIGHT_MIREDS))
    return LightEntry(
        on_off=_flag(entry.get(ATTR_DEVICE_STATE)),
        power_factor=_float(entry.get(ATTR_SWITCH_POWER_FACTOR)),
        color_temperature=scale_to_percent(mireds, *RANGE_MIREDS),
        dimmer=scale_to_percent(_float(entry.get(ATTR_LIGHT_DIMMER)), *RANGE_BRIGHTNESS),
    )


def _plug(entry: Mapping[str, Any]) -> PlugEntry:
    return PlugEntry(
        on_off=_flag(entry.get(ATTR_DEVICE_STATE)),
        power_factor=_float(entry.get(ATTR_SWITCH_POWER_FACTOR)),
        dimmer=scale_to_percent(_float(entry.get(ATTR_LIGHT_DIMMER)), *RANGE_BRIGHTNESS),
    )


def _blind(entry: Mapping[str, Any]) -> BlindEntry:
    return BlindEntry(
        position=_float(entry.get(ATTR_BLIND_CURRENT_POSITION)),
        trigger=_float(entry.get(ATTR_BLIND_TRIGGER)),
    )


def _sensor(entry: Mapping[str, Any]) -> SensorEntry:
    return SensorEntry(
        sensor_type=_str(entry.get(ATTR_SENSOR_TYPE)),
        min_measured_value=_float(entry.get(ATTR_SENSOR_MIN_MEASURED_VALUE)),
        max_measured_value=_float(entry.get(ATTR_SENSOR_MAX_MEASURED_VALUE)),
        min_range_value=_float(entry.get(ATTR_SENSOR_MIN_RANGE_VALUE)),
        max_range_value=_float(entry.get(ATTR_SENSOR_MAX_RANGE_VALUE)),
        reset_min_max_measure_value=_flag(entry.get(ATTR_GATEWAY_FACTORY_DEFAULTS_MIN_MAX_MSR)),
        sensor_value=_float(entry.get(ATTR_SENSOR_VALUE)),
    )


def _air_purifier(entry: Mapping[str, Any]) -> AirPurifierEntry:
    leds_off = _flag(entry.get(ATTR_AIR_PURIFIER_LEDS_OFF))
    return AirPurifierEntry(
        air_quality=_int(entry.get(ATTR_AIR_PURIFIER_AIR_QUALITY)),
        controls_locked=_flag(entry.get(ATTR_AIR_PURIFIER_CONTROLS_LOCKED)),
        fan_mode=_int(entry.get(ATTR_AIR_PURIFIER_MODE)),
        fan_speed=_int(entry.get(ATTR_AIR_PURIFIER_FAN_SPEED)),
        total_filter_lifetime=_int(entry.get(ATTR_AIR_PURIFIER_FILTER_LIFETIME_TOTAL)),
        filter_runtime=_int(entry.get(ATTR_AIR_PURIFIER_FILTER_RUNTIME)),
        filter_remaining_lifetime=_int(entry.get(ATTR_AIR_PURIFIER_FILTER_LIFETIME_REMAINING)),
        filter_status=_int(entry.get(ATTR_AIR_PURIFIER_FILTER_STATUS)),
        status_leds=None if leds_off is None else not leds_off,
        total_motor_runtime=_int(entry.get(ATTR_AIR_PURIFIER_MOTOR_RUNTIME_TOTAL)),
    )


def snapshot_from_payload(payload: Mapping[str, Any]) -> DeviceSnapshot:
    """Build a :class:`DeviceSnapshot` from a device resource payload.

    Missing fields become ``None``; a payload without ``9003`` yields a
    snapshot without an instance id, which the projector rejects.
    """
    info = payload.get(ATTR_DEVICE_INFO)
    info = info if isinstance(info, Mapping) else {}
    power_source = _int(info.get(ATTR_DEVICE_POWER_SOURCE))
    return DeviceSnapshot(
        instance_id=_int(payload.get(ATTR_ID)),
        type_token=type_token_for(payload.get(ATTR_APPLICATION_TYPE)),
        name=_str(payload.get(ATTR_NAME)),
        alive=_flag(payload.get(ATTR_REACHABLE_STATE)),
        ota_update_state=_int(payload.get(ATTR_OTA_UPDATE_STATE)),
        last_seen=_int(payload.get(ATTR_LAST_SEEN)),
        device_info=DeviceInfo(
            battery=_int(info.get(ATTR_DEVICE_BATTERY)),
            firmware_version=_str(info.get(ATTR_DEVICE_FIRMWARE_VERSION)),
            model_number=_str(info.get(ATTR_DEVICE_MODEL_NUMBER)),
            power=None if power_source is None else POWER_SOURCES.get(power_source, str(power_source)),
        ),
        lights=tuple(_light(e) for e in _entries(payload, ATTR_LIGHT_CONTROL)),
        plugs=tuple(_plug(e) for e in _entries(payload, ATTR_SWITCH_PLUG)),
        blinds=tuple(_blind(e) for e in _entries(payload, ATTR_START_BLINDS)),
        air_purifiers=tuple(_air_purifier(e) for e in _entries(payload, ROOT_AIR_PURIFIER)),
        sensors=tuple(_sensor(e) for e in _entries(payload, ATTR_SENSOR)),
    )


async def create_api_factory(host: str, identity: str, psk: str) -> APIFactory:
    """Open a DTLS session to the gateway."""
    # aiocoap and DTLSSocket ship with the pytradfri "async" extra
    from pytradfri.api.aiocoap_api import APIFactory

    return await APIFactory.init(host=host, psk_id=identity, psk=psk)


class TradfriGateway:
    """Device event source backed by a pytradfri CoAP session."""

    lp: str = "gateway:"

    def __init__(
        self,
        host: str,
        identity: str,
        psk: str,
        reobserve_delay: float = 5.0,
    ) -> None:
        self.host: str = host
        self.identity: str = identity
        self.psk: str = psk
        self.reobserve_delay: float = reobserve_delay
        # device id -> generation of its current observation
        self._observations: dict[DeviceId, int] = {}
        self._generation: Iterator[int] = count(1)
        self._factory: APIFactory | None = None
        self._api: Callable[..., Any] | None = None
        self._queue: asyncio.Queue[DeviceEvent | None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._stopped: bool = False

    async def connect(self) -> None:
        """Open the DTLS session and check the gateway answers.

        Raises:
            GatewayError: The gateway is unreachable or rejected the credentials.

        """
        lp = f"{self.lp}connect:"
        logger.info("%s Connecting to %s as %s", lp, self.host, self.identity)
        try:
            self._factory = await create_api_factory(self.host, self.identity, self.psk)
            self._api = self._factory.request
            device_ids = await self._api(Command("get", [ROOT_DEVICES]))
        except (PytradfriError, OSError) as e:
            raise GatewayError(f"{self.host}: {e}") from e
        logger.info("%s Connected! Gateway reports %d devices", lp, len(device_ids or []))

    async def start(self, queue: asyncio.Queue[DeviceEvent | None]) -> None:
        """Observe the device list; each listed device gets its own observation."""
        lp = f"{self.lp}start:"
        if self._api is None:
            msg = "connect() must be awaited before start()"
            raise GatewayError(msg)
        self._queue = queue
        logger.info("%s Starting to listen to devices", lp)
        try:
            await self._api(
                Command(
                    "get",
                    [ROOT_DEVICES],
                    observe=True,
                    observe_duration=0,
                    process_result=self.on_device_list,
                    err_callback=self._on_list_observe_error,
                ),
            )
        except PytradfriError as e:
            raise GatewayError(f"observing device list failed: {e}") from e

    @property
    def known_devices(self) -> set[DeviceId]:
        return set(self._observations)

    def on_device_list(self, device_ids: Iterable[Any]) -> None:
        """Diff the gateway's device list against the known set.

        A removed device's observation is retired: payloads it still delivers
        are dropped, so a device that comes back is reported by one
        observation only.
        """
        lp = f"{self.lp}device_list:"
        if self._stopped or self._queue is None:
            return
        current = {number for number in (_int(i) for i in device_ids or []) if number is not None}
        known = self.known_devices
        for device_id in sorted(known - current):
            logger.info("%s Device removed %s", lp, device_id)
            del self._observations[device_id]
            self._queue.put_nowait(DeviceRemoved(device_id))
        for device_id in sorted(current - known):
            logger.debug("%s Observing new device %s", lp, device_id)
            generation = next(self._generation)
            self._observations[device_id] = generation
            self._spawn(self._observe_device(device_id, generation))

    def _is_current(self, device_id: DeviceId, generation: int) -> bool:
        return not self._stopped and self._observations.get(device_id) == generation

    def _on_observed_payload(self, device_id: DeviceId, generation: int, payload: Any) -> None:
        if not self._is_current(device_id, generation):
            logger.debug("%s Dropping payload from retired observation of %s", self.lp, device_id)
            return
        self.on_device_payload(payload)

    def on_device_payload(self, payload: Any) -> None:
        lp = f"{self.lp}device_payload:"
        if self._stopped or self._queue is None:
            return
        if not isinstance(payload, Mapping):
            logger.warning("%s Ignoring non-object payload: %r", lp, payload)
            return
        self._queue.put_nowait(DeviceUpdated(snapshot_from_payload(payload)))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro, name=GATEWAY_OBSERVE_TASK_NAME)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _observe_device(self, device_id: DeviceId, generation: int) -> None:
        lp = f"{self.lp}observe:"
        if self._api is None or not self._is_current(device_id, generation):
            return
        try:
            await self._api(
                Command(
                    "get",
                    [ROOT_DEVICES, device_id],
                    observe=True,
                    observe_duration=0,
                    process_result=partial(self._on_observed_payload, device_id, generation),
                    err_callback=partial(self._on_device_observe_error, device_id, generation),
                ),
            )
        except PytradfriError as e:
            logger.warning("%s Observing device %s failed: %s", lp, device_id, e)
            self._schedule_reobserve(device_id, generation)

    def _on_device_observe_error(self, device_id: DeviceId, generation: int, err: Exception) -> None:
        logger.warning("%s Observation of device %s lost: %s", self.lp, device_id, err)
        self._schedule_reobserve(device_id, generation)

    def _on_list_observe_error(self, err: Exception) -> None:
        logger.warning("%s Observation of device list lost: %s", self.lp, err)
        if not self._stopped and self._queue is not None:
            self._spawn(self._reobserve_list())

    def _schedule_reobserve(self, device_id: DeviceId, generation: int) -> None:
        if self._is_current(device_id, generation):
            self._spawn(self._reobserve_device(device_id, generation))

    async def _reobserve_device(self, device_id: DeviceId, generation: int) -> None:
        await asyncio.sleep(self.reobserve_delay)
        await self._observe_device(device_id, generation)

    async def _reobserve_list(self) -> None:
        await asyncio.sleep(self.reobserve_delay)
        if not self._stopped and self._queue is not None:
            try:
                await self.start(self._queue)
            except GatewayError as e:
                logger.warning("%s %s", self.lp, e)
                self._spawn(self._reobserve_list())

    async def stop(self) -> None:
        lp = f"{self.lp}stop:"
        self._stopped = True
        logger.info("%s Shutting down tradfri", lp)
        for task in list(self._tasks):
            _ = task.cancel()
        if self._tasks:
            _ = await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._factory is not None:
            await self._factory.shutdown()
            self._factory = None
            self._api = None
