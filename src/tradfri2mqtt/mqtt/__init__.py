"""MQTT side of the bridge: the publish sink and its connection lifecycle."""

from .client import MQTTClient

__all__ = [
    "MQTTClient",
]
