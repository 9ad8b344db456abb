import os

from tradfri2mqtt import __version__

__all__ = [
    "BRIDGE_CONSUMER_TASK_NAME",
    "DEFAULT_MQTT_CLIENT_ID",
    "DEFAULT_MQTT_PORT",
    "DEFAULT_TOPIC_PREFIX",
    "GATEWAY_OBSERVE_TASK_NAME",
    "MQTT_BIRTH_MSG",
    "MQTT_WILL_MSG",
    "TRADFRI_DEBUG",
    "TRADFRI_LOG_FORMAT",
    "TRADFRI_LOG_HUMAN_OUTPUT",
    "TRADFRI_LOG_JSON_FILE",
    "TRADFRI_PERF_THRESHOLD_MS",
    "TRADFRI_PERF_TRACKING",
    "TRADFRI_VERSION",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", "on")

TRADFRI_VERSION: str = __version__
DEFAULT_TOPIC_PREFIX: str = "tradfri"
DEFAULT_MQTT_CLIENT_ID: str = "tradfri2mqtt"
DEFAULT_MQTT_PORT: int = 1883
MQTT_BIRTH_MSG: bytes = b"online"
MQTT_WILL_MSG: bytes = b"offline"

BRIDGE_CONSUMER_TASK_NAME: str = "bridge_consumer"
GATEWAY_OBSERVE_TASK_NAME: str = "gateway_observe"

TRADFRI_DEBUG: bool = os.environ.get("TRADFRI_DEBUG", "0").casefold() in YES_ANSWER
TRADFRI_LOG_FORMAT: str = os.environ.get("TRADFRI_LOG_FORMAT", "human").casefold()
TRADFRI_LOG_JSON_FILE: str | None = os.environ.get("TRADFRI_LOG_JSON_FILE") or None
TRADFRI_LOG_HUMAN_OUTPUT: str = os.environ.get("TRADFRI_LOG_HUMAN_OUTPUT", "stdout")

TRADFRI_PERF_TRACKING: bool = os.environ.get("TRADFRI_PERF_TRACKING", "0").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("TRADFRI_PERF_THRESHOLD_MS", "250")
try:
    _perf_threshold_value = int(_perf_threshold)
except ValueError:
    _perf_threshold_value = 250
TRADFRI_PERF_THRESHOLD_MS: int = _perf_threshold_value
