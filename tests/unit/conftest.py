"""
Shared fixtures for unit tests.

Provides an in-memory publish sink, a recording error reporter and snapshot
builders for the device kinds the bridge knows about.
"""

from __future__ import annotations

import asyncio

import pytest

from tradfri2mqtt.structs import (
    BlindEntry,
    DeviceEvent,
    DeviceInfo,
    DeviceSnapshot,
    ErrorContext,
    LightEntry,
    PlugEntry,
)


class RecordingSink:
    """Publish sink that keeps every (path, value) it was handed, in order."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.published: list[tuple[str, str]] = []
        self.attempts: list[tuple[str, str]] = []
        self.fail_on: set[str] = fail_on or set()
        self.stopped: bool = False

    async def publish(self, path: str, value: str) -> None:
        self.attempts.append((path, value))
        if path in self.fail_on:
            msg = f"refused {path}"
            raise RuntimeError(msg)
        self.published.append((path, value))

    async def stop(self) -> None:
        self.stopped = True


class RecordingReporter:
    def __init__(self) -> None:
        self.reports: list[tuple[ErrorContext, BaseException]] = []

    def report(self, context: ErrorContext, cause: BaseException) -> None:
        self.reports.append((context, cause))


class ListSource:
    """Event source that enqueues a fixed list of events on start."""

    def __init__(self, events: list[DeviceEvent] | None = None) -> None:
        self.events: list[DeviceEvent] = list(events or [])
        self.calls: list[str] = []

    async def start(self, queue: asyncio.Queue[DeviceEvent | None]) -> None:
        self.calls.append("start")
        for event in self.events:
            queue.put_nowait(event)

    async def stop(self) -> None:
        self.calls.append("stop")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def plug_snapshot():
    """Plug 5 'Desk', alive, switched on at full power."""
    return DeviceSnapshot(
        instance_id=5,
        type_token="plug",
        name="Desk",
        alive=True,
        ota_update_state=0,
        last_seen=1700000000,
        device_info=DeviceInfo(firmware_version="2.3.086", model_number="TRADFRI control outlet", power="ac_power"),
        plugs=(PlugEntry(on_off=True, power_factor=1.0, dimmer=100.0),),
    )


@pytest.fixture
def light_snapshot():
    return DeviceSnapshot(
        instance_id=65537,
        type_token="lightbulb",
        name="Kitchen",
        alive=True,
        last_seen=1700000000,
        device_info=DeviceInfo(model_number="TRADFRI bulb E27 WS opal 980lm", power="ac_power"),
        lights=(LightEntry(on_off=False, color_temperature=50.0, dimmer=50.0),),
    )


@pytest.fixture
def blind_snapshot():
    return DeviceSnapshot(
        instance_id=65550,
        type_token="blind",
        name="Bedroom",
        alive=True,
        device_info=DeviceInfo(battery=87, power="internal_battery"),
        blinds=(BlindEntry(position=30.0),),
    )


@pytest.fixture
def failing_sink():
    """Factory for sinks that raise on the given paths."""

    def _make(*paths: str) -> RecordingSink:
        return RecordingSink(fail_on=set(paths))

    return _make


@pytest.fixture
def list_source():
    """Factory for sources delivering the given events on start."""

    def _make(*events: DeviceEvent) -> ListSource:
        return ListSource(list(events))

    return _make
