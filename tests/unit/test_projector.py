"""Unit tests for DeviceProjector."""

import pytest

from tradfri2mqtt.exceptions import MalformedSnapshotError
from tradfri2mqtt.projector import DeviceProjector
from tradfri2mqtt.structs import (
    AirPurifierEntry,
    DeviceSnapshot,
    LightEntry,
    SensorEntry,
)

CORE_KEYS = ["instanceId", "name", "alive", "otaUpdateState", "type", "lastSeen"]
INFO_KEYS = ["battery", "firmwareVersion", "modelNumber", "power"]


def _keys(attributes):
    return [a.key for a in attributes]


class TestDeviceProjector:
    def test_plug_order_and_values(self, plug_snapshot):
        attributes = DeviceProjector("tradfri").project(plug_snapshot)

        assert _keys(attributes) == [*CORE_KEYS, *INFO_KEYS, "onOff", "powerFactor", "dimmer"]
        values = {a.key: a.value for a in attributes}
        assert values == {
            "instanceId": "5",
            "name": "Desk",
            "alive": "true",
            "otaUpdateState": "0",
            "type": "plug",
            "lastSeen": "2023-11-14T22:13:20.000Z",
            "battery": "",
            "firmwareVersion": "2.3.086",
            "modelNumber": "TRADFRI control outlet",
            "power": "ac_power",
            "onOff": "true",
            "powerFactor": "1",
            "dimmer": "100",
        }
        assert {a.base_path for a in attributes} == {"tradfri/plug/5"}

    def test_light(self, light_snapshot):
        attributes = DeviceProjector("tradfri").project(light_snapshot)

        assert _keys(attributes)[len(CORE_KEYS) + len(INFO_KEYS) :] == [
            "onOff",
            "powerFactor",
            "colorTemperature",
            "dimmer",
        ]
        values = {a.key: a.value for a in attributes}
        assert values["onOff"] == "false"
        assert values["powerFactor"] == ""
        assert values["dimmer"] == "50"
        assert attributes[0].base_path == "tradfri/lightbulb/65537"

    def test_blind(self, blind_snapshot):
        attributes = DeviceProjector("tradfri").project(blind_snapshot)

        values = {a.key: a.value for a in attributes}
        assert _keys(attributes)[-2:] == ["position", "trigger"]
        assert values["position"] == "30"
        assert values["trigger"] == ""
        assert values["battery"] == "87"

    def test_air_purifier(self):
        snapshot = DeviceSnapshot(
            instance_id=65560,
            type_token="air-purifier",
            air_purifiers=(AirPurifierEntry(air_quality=12, controls_locked=False, fan_mode=1, status_leds=True),),
        )

        attributes = DeviceProjector("tradfri").project(snapshot)

        assert _keys(attributes)[len(CORE_KEYS) + len(INFO_KEYS) :] == [
            "airQuality",
            "controlsLocked",
            "fanMode",
            "fanSpeed",
            "totalFilterLifetime",
            "filterRuntime",
            "filterRemainingLifetime",
            "filterStatus",
            "statusLEDs",
            "totalMotorRuntime",
        ]
        values = {a.key: a.value for a in attributes}
        assert values["airQuality"] == "12"
        assert values["controlsLocked"] == "false"
        assert values["statusLEDs"] == "true"
        assert attributes[0].base_path == "tradfri/air-purifier/65560"

    def test_motion_sensor(self):
        snapshot = DeviceSnapshot(
            instance_id=65541,
            type_token="motion-sensor",
            sensors=(SensorEntry(sensor_type="motion", sensor_value=1.0),),
        )

        attributes = DeviceProjector("tradfri").project(snapshot)

        assert _keys(attributes)[len(CORE_KEYS) + len(INFO_KEYS) :] == [
            "sensorType",
            "minMeasuredValue",
            "maxMeasuredValue",
            "minRangeValue",
            "maxRangeValue",
            "resetMinMaxMeasureValue",
            "sensorValue",
        ]

    def test_every_entry_is_projected(self):
        snapshot = DeviceSnapshot(
            instance_id=9,
            type_token="lightbulb",
            lights=(LightEntry(on_off=True), LightEntry(on_off=False)),
        )

        attributes = DeviceProjector("tradfri").project(snapshot)

        assert [a.value for a in attributes if a.key == "onOff"] == ["true", "false"]

    def test_remote_publishes_core_and_info_only(self):
        snapshot = DeviceSnapshot(instance_id=65536, type_token="remote", name="Remote")

        attributes = DeviceProjector("tradfri").project(snapshot)

        assert _keys(attributes) == [*CORE_KEYS, *INFO_KEYS]
        assert attributes[0].base_path == "tradfri/remote/65536"

    def test_unrecognized_type(self, caplog):
        snapshot = DeviceSnapshot(instance_id=3, type_token="customType99", name="Mystery")

        attributes = DeviceProjector("tradfri").project(snapshot)

        assert _keys(attributes) == [*CORE_KEYS, *INFO_KEYS]
        assert {a.base_path for a in attributes} == {"tradfri/customType99/3"}
        assert {a.key: a.value for a in attributes}["type"] == "customType99"
        assert "unrecognized type" in caplog.text

    def test_missing_fields_render_empty(self):
        snapshot = DeviceSnapshot(instance_id=7, type_token="plug")

        attributes = DeviceProjector("tradfri").project(snapshot)

        values = {a.key: a.value for a in attributes}
        assert values["instanceId"] == "7"
        assert values["name"] == ""
        assert values["lastSeen"] == ""
        assert _keys(attributes) == [*CORE_KEYS, *INFO_KEYS]

    def test_missing_instance_id_is_malformed(self):
        snapshot = DeviceSnapshot(instance_id=None, type_token="plug", name="Ghost")

        with pytest.raises(MalformedSnapshotError):
            _ = DeviceProjector("tradfri").project(snapshot)

    def test_projection_is_deterministic(self, plug_snapshot):
        projector = DeviceProjector("tradfri")

        assert projector.project(plug_snapshot) == projector.project(plug_snapshot)
