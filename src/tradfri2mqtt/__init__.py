"""Bridge IKEA TRÅDFRI gateway device state to an MQTT broker."""

__version__ = "0.3.0"
