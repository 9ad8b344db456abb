"""Change-gated publishing of single attributes."""

from __future__ import annotations

from tradfri2mqtt.cache import AttributeCache
from tradfri2mqtt.instrumentation import timed_async
from tradfri2mqtt.logging_abstraction import get_logger
from tradfri2mqtt.metrics import record_cache_hit, record_publish
from tradfri2mqtt.paths import build_attribute_path
from tradfri2mqtt.structs import DeviceId, ErrorContext, ErrorReporter, PublishSink

logger = get_logger(__name__)


class ChangePublisher:
    """Publishes an attribute only when its rendered value changed.

    The cache is updated before the sink is awaited. A failed publish is
    reported and not retried, and the cache keeps the new value, so delivery
    is at most once per change.
    """

    lp: str = "publisher:"
    component: str = "ChangePublisher"

    def __init__(
        self,
        sink: PublishSink,
        reporter: ErrorReporter,
        cache: AttributeCache | None = None,
    ) -> None:
        self.sink: PublishSink = sink
        self.reporter: ErrorReporter = reporter
        self._cache: AttributeCache = cache if cache is not None else AttributeCache()

    @property
    def cache(self) -> AttributeCache:
        return self._cache

    @timed_async("publish_if_changed")
    async def publish_if_changed(self, device_id: DeviceId, key: str, value: str, base_path: str) -> None:
        """Publish ``value`` to ``{base_path}/{key}`` unless it equals the cached value.

        Never raises on sink failure; the failure goes to the error reporter.
        """
        lp = f"{self.lp}publish_if_changed:"
        if not self._cache.observe(device_id, key, value):
            record_cache_hit(key)
            logger.debug("%s unchanged %s/%s", lp, base_path, key)
            return

        path = build_attribute_path(base_path, key)
        try:
            await self.sink.publish(path, value)
        except Exception as e:
            record_publish(key, "failed")
            self.reporter.report(
                ErrorContext(component=self.component, device_id=device_id, key=key, value=value),
                e,
            )
        else:
            record_publish(key, "ok")
            logger.debug("%s %s = %r", lp, path, value)
