"""Topic derivation: ``{prefix}/{type segment}/{device id}/{attribute}``."""

from __future__ import annotations

from tradfri2mqtt.structs import DeviceId, DeviceType

TYPE_SEGMENTS: dict[DeviceType, str] = {
    device_type: device_type.value for device_type in DeviceType if device_type is not DeviceType.UNKNOWN
}


def type_segment(type_token: DeviceType | str) -> str:
    """Topic segment for a device type; unrecognized tokens are used verbatim."""
    device_type = type_token if isinstance(type_token, DeviceType) else DeviceType.from_token(type_token)
    return TYPE_SEGMENTS.get(device_type, str(type_token))


def build_base_path(topic_prefix: str, type_token: DeviceType | str, device_id: DeviceId) -> str:
    return f"{topic_prefix}/{type_segment(type_token)}/{device_id}"


def build_attribute_path(base_path: str, key: str) -> str:
    return f"{base_path}/{key}"
