"""MQTT publish sink.

Wraps :class:`aiomqtt.Client` with the bridge's connection lifecycle: a last
will on ``{prefix}/bridge/connected``, a retained birth message once
connected, and a single lazy reconnect attempt when a publish finds the
connection down.
"""

from __future__ import annotations

import time

import aiomqtt

from tradfri2mqtt.config import BridgeEnv
from tradfri2mqtt.const import MQTT_BIRTH_MSG, MQTT_WILL_MSG
from tradfri2mqtt.exceptions import PublishError
from tradfri2mqtt.instrumentation import timed_async
from tradfri2mqtt.logging_abstraction import get_logger

logger = get_logger(__name__)


class MQTTClient:
    """Publish-only broker connection used as the bridge's publish sink."""

    lp: str = "mqtt:"

    def __init__(self, settings: BridgeEnv) -> None:
        self.topic: str = settings.topic_prefix
        self.broker_host: str = settings.mqtt_host
        self.broker_port: int = settings.mqtt_port
        self.broker_username: str | None = settings.mqtt_user
        self.broker_password: str | None = settings.mqtt_password
        self.broker_client_id: str = settings.mqtt_client_id
        self.retain: bool = settings.mqtt_retain
        self.reconnect_delay: int = settings.mqtt_conn_delay
        self.client: aiomqtt.Client | None = None
        self._connected: bool = False
        self._session_open: bool = False
        self._last_attempt: float | None = None

    @property
    def status_topic(self) -> str:
        return f"{self.topic}/bridge/connected"

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _build_client(self) -> aiomqtt.Client:
        will = aiomqtt.Will(topic=self.status_topic, payload=MQTT_WILL_MSG, qos=0, retain=True)
        return aiomqtt.Client(
            hostname=self.broker_host,
            port=self.broker_port,
            username=self.broker_username,
            password=self.broker_password,
            identifier=self.broker_client_id,
            will=will,
        )

    async def connect(self) -> bool:
        """Open a broker session. Returns False instead of raising when the broker refuses."""
        lp = f"{self.lp}connect:"
        self._connected = False
        self._last_attempt = time.monotonic()
        logger.info("%s Connecting to MQTT %s:%s", lp, self.broker_host, self.broker_port)
        self.client = self._build_client()
        try:
            _ = await self.client.__aenter__()
        except aiomqtt.MqttError as e:
            # [code:134] Bad user name or password
            if "code:134" in str(e):
                logger.error(
                    "%s Bad username or password, check your MQTT credentials (username: %s)",
                    lp,
                    self.broker_username,
                )
            else:
                logger.warning("%s Connection failed: %s", lp, e)
            return False
        self._connected = True
        self._session_open = True
        logger.info("%s Connected to MQTT!", lp, extra={"host": self.broker_host, "port": self.broker_port})
        _ = await self.send_birth_msg()
        return True

    async def _ensure_connected(self, path: str) -> None:
        lp = f"{self.lp}reconnect:"
        if self._connected:
            return
        if self._last_attempt is not None and time.monotonic() - self._last_attempt < self.reconnect_delay:
            raise PublishError(path, "broker unavailable")
        logger.info("%s Connection lost, trying to reconnect", lp)
        if not await self.connect():
            raise PublishError(path, "broker unavailable")

    @timed_async("mqtt_publish")
    async def publish(self, path: str, value: str) -> None:
        """Publish ``value`` on ``path``.

        Raises:
            PublishError: The broker is unreachable or rejected the message.

        """
        lp = f"{self.lp}publish:"
        await self._ensure_connected(path)
        assert self.client is not None, "client must be initialized"
        try:
            await self.client.publish(path, value.encode(), qos=0, retain=self.retain)
        except aiomqtt.MqttError as e:
            logger.warning("%s [MqttError] %s -> %s", lp, path, e)
            self._connected = False
            raise PublishError(path, str(e)) from e

    async def send_birth_msg(self) -> bool:
        return await self._send_status(MQTT_BIRTH_MSG)

    async def send_will_msg(self) -> bool:
        return await self._send_status(MQTT_WILL_MSG)

    async def _send_status(self, payload: bytes) -> bool:
        lp = f"{self.lp}status:"
        if not self._connected or self.client is None:
            return False
        logger.debug("%s Sending %s to %s", lp, payload, self.status_topic)
        try:
            await self.client.publish(self.status_topic, payload, qos=0, retain=True)
        except aiomqtt.MqttError as e:
            logger.warning("%s [MqttError] -> %s", lp, e)
            self._connected = False
            return False
        return True

    async def stop(self) -> None:
        """Announce the bridge offline and close the session."""
        lp = f"{self.lp}stop:"
        if self._connected:
            _ = await self.send_will_msg()
        if self.client is None or not self._session_open:
            return
        try:
            logger.info("%s Shutting down mqtt", lp)
            await self.client.__aexit__(None, None, None)
        except aiomqtt.MqttError as e:
            logger.warning("%s MQTT disconnect failed: %s", lp, e)
        finally:
            self._connected = False
            self._session_open = False
