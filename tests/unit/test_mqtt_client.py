"""
Unit tests for MQTTClient.

Tests connection lifecycle (birth, will, reconnect) and publish error mapping
with aiomqtt.Client patched out.
"""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import aiomqtt
import pytest

from tradfri2mqtt.config import BridgeEnv
from tradfri2mqtt.exceptions import PublishError
from tradfri2mqtt.mqtt import MQTTClient


@pytest.fixture
def settings():
    return BridgeEnv(
        gateway_host="192.168.1.20",
        gateway_identity="bridge",
        gateway_psk="secret",
        mqtt_host="broker.local",
        mqtt_user="user",
        mqtt_password="pass",
        mqtt_retain=True,
    )


@pytest.fixture
def aiomqtt_client():
    """Patched aiomqtt.Client class; ``.return_value`` is the session mock."""
    with patch("tradfri2mqtt.mqtt.client.aiomqtt.Client") as client_cls:
        session = MagicMock()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=None)
        session.publish = AsyncMock()
        client_cls.return_value = session
        yield client_cls


class TestMQTTClientConnection:
    @pytest.mark.asyncio
    async def test_connect_sends_birth(self, settings, aiomqtt_client):
        client = MQTTClient(settings)

        assert await client.connect() is True

        assert client.is_connected
        kwargs = aiomqtt_client.call_args.kwargs
        assert kwargs["hostname"] == "broker.local"
        assert kwargs["port"] == 1883
        assert kwargs["username"] == "user"
        assert kwargs["identifier"] == "tradfri2mqtt"
        assert kwargs["will"].topic == "tradfri/bridge/connected"
        assert kwargs["will"].retain is True
        aiomqtt_client.return_value.publish.assert_awaited_once_with(
            "tradfri/bridge/connected", b"online", qos=0, retain=True
        )

    @pytest.mark.asyncio
    async def test_connect_failure_returns_false(self, settings, aiomqtt_client):
        aiomqtt_client.return_value.__aenter__.side_effect = aiomqtt.MqttError("connection refused")
        client = MQTTClient(settings)

        assert await client.connect() is False
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_bad_credentials_are_logged(self, settings, aiomqtt_client, caplog):
        aiomqtt_client.return_value.__aenter__.side_effect = aiomqtt.MqttError("[code:134] Bad user name or password")
        client = MQTTClient(settings)

        assert await client.connect() is False
        assert "Bad username or password" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_sends_will_and_closes(self, settings, aiomqtt_client):
        client = MQTTClient(settings)
        _ = await client.connect()

        await client.stop()

        session = aiomqtt_client.return_value
        session.publish.assert_awaited_with("tradfri/bridge/connected", b"offline", qos=0, retain=True)
        session.__aexit__.assert_awaited_once()
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_stop_without_connect(self, settings, aiomqtt_client):
        client = MQTTClient(settings)

        await client.stop()

        aiomqtt_client.return_value.__aexit__.assert_not_awaited()


class TestMQTTClientPublish:
    @pytest.mark.asyncio
    async def test_publish_encodes_and_retains(self, settings, aiomqtt_client):
        client = MQTTClient(settings)
        _ = await client.connect()

        await client.publish("tradfri/plug/5/onOff", "true")

        aiomqtt_client.return_value.publish.assert_awaited_with("tradfri/plug/5/onOff", b"true", qos=0, retain=True)

    @pytest.mark.asyncio
    async def test_publish_empty_value(self, settings, aiomqtt_client):
        client = MQTTClient(settings)
        _ = await client.connect()

        await client.publish("tradfri/plug/5/battery", "")

        aiomqtt_client.return_value.publish.assert_awaited_with("tradfri/plug/5/battery", b"", qos=0, retain=True)

    @pytest.mark.asyncio
    async def test_publish_error_is_mapped(self, settings, aiomqtt_client):
        client = MQTTClient(settings)
        _ = await client.connect()
        aiomqtt_client.return_value.publish.side_effect = aiomqtt.MqttError("not connected")

        with pytest.raises(PublishError) as exc_info:
            await client.publish("tradfri/plug/5/onOff", "true")

        assert exc_info.value.topic == "tradfri/plug/5/onOff"
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_publish_while_down_fails_fast(self, settings, aiomqtt_client):
        aiomqtt_client.return_value.__aenter__.side_effect = aiomqtt.MqttError("connection refused")
        client = MQTTClient(settings)
        _ = await client.connect()

        with pytest.raises(PublishError, match="broker unavailable"):
            await client.publish("tradfri/plug/5/onOff", "true")

        assert aiomqtt_client.call_count == 1

    @pytest.mark.asyncio
    async def test_publish_reconnects_after_delay(self, settings, aiomqtt_client):
        client = MQTTClient(settings)
        _ = await client.connect()
        client._connected = False
        client._last_attempt = time.monotonic() - settings.mqtt_conn_delay - 1

        await client.publish("tradfri/plug/5/onOff", "true")

        assert aiomqtt_client.call_count == 2
        assert client.is_connected
        aiomqtt_client.return_value.publish.assert_awaited_with("tradfri/plug/5/onOff", b"true", qos=0, retain=True)
