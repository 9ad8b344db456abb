"""Exception hierarchy for the bridge.

Only :class:`ConfigError` and :class:`GatewayError` raised during startup are
fatal; everything raised while handling device events is reported and the
event loop carries on.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigError(BridgeError):
    """Configuration is missing or invalid.

    Attributes:
        key: Name of the offending setting, when known

    """

    def __init__(self, reason: str, key: str | None = None) -> None:
        self.key: str | None = key
        super().__init__(reason)


class PublishError(BridgeError):
    """The broker rejected a publish or is unreachable.

    Attributes:
        topic: Topic that could not be published
        reason: Specific failure reason

    """

    def __init__(self, topic: str, reason: str) -> None:
        self.topic: str = topic
        self.reason: str = reason
        super().__init__(f"Publish to {topic} failed: {reason}")


class GatewayError(BridgeError):
    """The gateway session could not be established or was lost.

    Attributes:
        reason: Specific failure reason

    """

    def __init__(self, reason: str) -> None:
        self.reason: str = reason
        super().__init__(f"Gateway error: {reason}")


class MalformedSnapshotError(BridgeError):
    """A device snapshot lacks a field the projection cannot do without."""

    def __init__(self, reason: str, device_id: int | None = None) -> None:
        self.reason: str = reason
        self.device_id: int | None = device_id
        super().__init__(f"Malformed snapshot (device {device_id}): {reason}")
