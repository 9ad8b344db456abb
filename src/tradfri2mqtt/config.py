"""Startup configuration.

Settings come from environment variables, optionally layered over a YAML file
passed with ``--config``. A variable that is set always wins over the file.
The result is validated once into an immutable :class:`BridgeEnv`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from tradfri2mqtt.const import DEFAULT_MQTT_CLIENT_ID, DEFAULT_MQTT_PORT, DEFAULT_TOPIC_PREFIX, YES_ANSWER
from tradfri2mqtt.exceptions import ConfigError
from tradfri2mqtt.logging_abstraction import get_logger

__all__ = [
    "ENV_KEYS",
    "REQUIRED_KEYS",
    "BridgeEnv",
    "load_settings",
    "parse_mqtt_address",
]

logger = get_logger(__name__)

# environment variable -> (yaml section, yaml key)
ENV_KEYS: dict[str, tuple[str | None, str]] = {
    "TRADFRI_GATEWAY": ("gateway", "host"),
    "TRADFRI_IDENTITY": ("gateway", "identity"),
    "TRADFRI_PSK": ("gateway", "psk"),
    "MQTT_ADDRESS": ("mqtt", "address"),
    "MQTT_USER": ("mqtt", "user"),
    "MQTT_PASSWORD": ("mqtt", "password"),
    "MQTT_CLIENT_ID": ("mqtt", "client_id"),
    "MQTT_RETAIN": ("mqtt", "retain"),
    "MQTT_CONN_DELAY": ("mqtt", "conn_delay"),
    "TOPIC_PREFIX": (None, "topic_prefix"),
    "METRICS_PORT": (None, "metrics_port"),
}

REQUIRED_KEYS: tuple[str, ...] = ("TRADFRI_GATEWAY", "TRADFRI_IDENTITY", "TRADFRI_PSK", "MQTT_ADDRESS")


class BridgeEnv(BaseModel):
    """Validated, read-only settings for one process run."""

    model_config = ConfigDict(frozen=True)

    gateway_host: str
    gateway_identity: str
    gateway_psk: str
    mqtt_host: str
    mqtt_port: int = DEFAULT_MQTT_PORT
    mqtt_user: str | None = None
    mqtt_password: str | None = None
    mqtt_client_id: str = DEFAULT_MQTT_CLIENT_ID
    mqtt_retain: bool = False
    mqtt_conn_delay: int = 5
    topic_prefix: str = DEFAULT_TOPIC_PREFIX
    metrics_port: int | None = None

    @field_validator("topic_prefix")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        value = value.strip().strip("/")
        return value or DEFAULT_TOPIC_PREFIX

    @field_validator("mqtt_conn_delay")
    @classmethod
    def _positive_delay(cls, value: int) -> int:
        if value <= 0:
            logger.debug("config: MQTT_CONN_DELAY <= 0 is probably a typo, using 5")
            return 5
        return value


def parse_mqtt_address(address: str) -> tuple[str, int]:
    """Split ``host``, ``host:port`` or ``mqtt://host:port`` into host and port."""
    if "://" not in address:
        address = f"mqtt://{address}"
    parts = urlsplit(address)
    if not parts.hostname:
        msg = f"Invalid MQTT_ADDRESS {address!r}"
        raise ConfigError(msg, key="MQTT_ADDRESS")
    try:
        port = parts.port or DEFAULT_MQTT_PORT
    except ValueError as e:
        msg = f"Invalid MQTT_ADDRESS port in {address!r}"
        raise ConfigError(msg, key="MQTT_ADDRESS") from e
    return parts.hostname, port


def _read_config_file(config_file: Path) -> dict[str, Any]:
    try:
        with config_file.open() as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        msg = f"Cannot read config file {config_file}: {e}"
        raise ConfigError(msg) from e
    if not isinstance(data, dict):
        msg = f"Config file {config_file} must contain a mapping"
        raise ConfigError(msg)
    return data


def _lookup(env_key: str, environ: Mapping[str, str], file_data: Mapping[str, Any]) -> str | None:
    raw = environ.get(env_key)
    if raw is None or not raw.strip():
        section, key = ENV_KEYS[env_key]
        scope = file_data.get(section, {}) if section else file_data
        raw = scope.get(key) if isinstance(scope, Mapping) else None
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def load_settings(environ: Mapping[str, str] | None = None, config_file: Path | None = None) -> BridgeEnv:
    """Build :class:`BridgeEnv` from ``environ`` (default: :data:`os.environ`) and ``config_file``.

    Raises:
        ConfigError: A required setting is missing or a value does not validate.

    """
    environ = os.environ if environ is None else environ
    file_data = _read_config_file(config_file) if config_file is not None else {}
    values = {key: _lookup(key, environ, file_data) for key in ENV_KEYS}

    for key in REQUIRED_KEYS:
        if values[key] is None:
            msg = f"Missing parameters {key}"
            raise ConfigError(msg, key=key)

    mqtt_host, mqtt_port = parse_mqtt_address(values["MQTT_ADDRESS"] or "")
    fields: dict[str, Any] = {
        "gateway_host": values["TRADFRI_GATEWAY"],
        "gateway_identity": values["TRADFRI_IDENTITY"],
        "gateway_psk": values["TRADFRI_PSK"],
        "mqtt_host": mqtt_host,
        "mqtt_port": mqtt_port,
        "mqtt_user": values["MQTT_USER"],
        "mqtt_password": values["MQTT_PASSWORD"],
    }
    if values["MQTT_CLIENT_ID"] is not None:
        fields["mqtt_client_id"] = values["MQTT_CLIENT_ID"]
    if values["MQTT_RETAIN"] is not None:
        fields["mqtt_retain"] = values["MQTT_RETAIN"].casefold() in YES_ANSWER
    if values["MQTT_CONN_DELAY"] is not None:
        fields["mqtt_conn_delay"] = values["MQTT_CONN_DELAY"]
    if values["TOPIC_PREFIX"] is not None:
        fields["topic_prefix"] = values["TOPIC_PREFIX"]
    if values["METRICS_PORT"] is not None:
        fields["metrics_port"] = values["METRICS_PORT"]

    try:
        return BridgeEnv(**fields)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
