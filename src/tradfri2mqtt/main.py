from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import dotenv
import uvloop

from tradfri2mqtt.bridge import Bridge
from tradfri2mqtt.config import BridgeEnv, load_settings
from tradfri2mqtt.const import TRADFRI_DEBUG, TRADFRI_VERSION
from tradfri2mqtt.correlation import event_context
from tradfri2mqtt.exceptions import ConfigError, GatewayError
from tradfri2mqtt.gateway import TradfriGateway
from tradfri2mqtt.logging_abstraction import get_logger, set_level_all
from tradfri2mqtt.metrics import start_metrics_server
from tradfri2mqtt.mqtt import MQTTClient

logger = get_logger(__name__)

# aiocoap and DTLS are chatty at INFO
for _noisy in ("aiocoap", "pytradfri", "DTLSSocket"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror IKEA TRÅDFRI device state to MQTT")
    parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument("--config", help="Path to a YAML settings file", default=None, type=Path)
    args = parser.parse_args(argv)

    if args.debug:
        set_level_all(logging.DEBUG)
        logger.info("Debug mode enabled via CLI argument")

    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            logger.error("Environment file not found", extra={"path": str(env_path)})
        elif dotenv.load_dotenv(env_path, override=True):
            logger.info("Environment variables loaded", extra={"source": str(env_path)})
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})

    return args


async def run(settings: BridgeEnv, stop_event: asyncio.Event | None = None) -> int:
    """Connect the gateway and the broker, then bridge until ``stop_event`` is set.

    SIGINT and SIGTERM set the event. The bridge is fully stopped, broker
    offline message included, before this returns the process exit code.
    """
    lp = "main:"
    gateway = TradfriGateway(settings.gateway_host, settings.gateway_identity, settings.gateway_psk)
    try:
        await gateway.connect()
    except GatewayError as e:
        logger.error("%s Unable to connect to gateway: %s", lp, e, extra={"host": settings.gateway_host})
        return 1

    mqtt_client = MQTTClient(settings)
    if not await mqtt_client.connect():
        logger.error("%s Unable to connect to MQTT broker", lp, extra={"host": settings.mqtt_host})
        await gateway.stop()
        return 1

    bridge = Bridge(sink=mqtt_client, source=gateway, topic_prefix=settings.topic_prefix)
    stop_event = stop_event if stop_event is not None else asyncio.Event()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        loop.add_signal_handler(sig, stop_event.set)
    logger.debug("%s Signal handlers configured for SIGINT & SIGTERM", lp)

    try:
        try:
            await bridge.start()
        except GatewayError as e:
            logger.error("%s %s", lp, e)
            return 1
        _ = await stop_event.wait()
        logger.info("%s Stop requested", lp)
        return 0
    finally:
        await bridge.stop()
        for sig in signals:
            _ = loop.remove_signal_handler(sig)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``tradfri2mqtt`` console script."""
    with event_context():
        logger.info("Starting tradfri2mqtt", extra={"version": TRADFRI_VERSION})
        args = parse_cli(argv)
        if TRADFRI_DEBUG:
            set_level_all(logging.DEBUG)
            logger.info("Debug logging enabled via configuration")

        try:
            settings = load_settings(config_file=args.config)
        except ConfigError as e:
            logger.error("%s", e, extra={"key": e.key})
            return 1

        if settings.metrics_port is not None:
            start_metrics_server(settings.metrics_port)
            logger.info("Serving metrics", extra={"port": settings.metrics_port})

    try:
        code = uvloop.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
        code = 0
    except Exception as e:
        logger.exception("Fatal error in main loop", extra={"error": str(e)})
        code = 1
    logger.info("tradfri2mqtt shutdown complete", extra={"exit_code": code})
    return code


if __name__ == "__main__":
    sys.exit(main())
