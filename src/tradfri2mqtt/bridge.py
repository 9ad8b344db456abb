"""Event loop tying the gateway source to the publish sink.

Events are consumed one at a time by a single task, so attributes of one
snapshot are published in projection order and snapshots in arrival order.
"""

from __future__ import annotations

import asyncio

from tradfri2mqtt.cache import AttributeCache
from tradfri2mqtt.const import BRIDGE_CONSUMER_TASK_NAME
from tradfri2mqtt.correlation import event_context
from tradfri2mqtt.exceptions import MalformedSnapshotError
from tradfri2mqtt.logging_abstraction import get_logger
from tradfri2mqtt.metrics import record_event
from tradfri2mqtt.projector import DeviceProjector
from tradfri2mqtt.publisher import ChangePublisher
from tradfri2mqtt.reporting import LoggingErrorReporter
from tradfri2mqtt.structs import (
    DeviceEvent,
    DeviceEventSource,
    DeviceId,
    DeviceRemoved,
    DeviceSnapshot,
    DeviceUpdated,
    ErrorContext,
    ErrorReporter,
    PublishSink,
)

logger = get_logger(__name__)


class Bridge:
    """Receives device events and forwards changed attributes to the sink."""

    lp: str = "bridge:"

    def __init__(
        self,
        sink: PublishSink,
        source: DeviceEventSource,
        topic_prefix: str,
        reporter: ErrorReporter | None = None,
        cache: AttributeCache | None = None,
    ) -> None:
        self.sink: PublishSink = sink
        self.source: DeviceEventSource = source
        self.reporter: ErrorReporter = reporter if reporter is not None else LoggingErrorReporter()
        self.projector: DeviceProjector = DeviceProjector(topic_prefix)
        self.publisher: ChangePublisher = ChangePublisher(sink, self.reporter, cache)
        self.queue: asyncio.Queue[DeviceEvent | None] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._stopping: bool = False

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    async def start(self) -> None:
        """Start consuming, then let the source begin delivering events."""
        lp = f"{self.lp}start:"
        if self.running:
            logger.debug("%s already running", lp)
            return
        self._stopping = False
        self._consumer = asyncio.create_task(self.run(), name=BRIDGE_CONSUMER_TASK_NAME)
        logger.info("%s Listening for device events", lp)
        await self.source.start(self.queue)

    async def run(self) -> None:
        """Drain the queue until the stop sentinel arrives."""
        while True:
            event = await self.queue.get()
            try:
                if event is None:
                    return
                await self.handle_event(event)
            finally:
                self.queue.task_done()

    async def handle_event(self, event: DeviceEvent) -> None:
        with event_context():
            match event:
                case DeviceUpdated(snapshot=snapshot):
                    await self.on_device_update(snapshot)
                case DeviceRemoved(device_id=device_id):
                    self.on_device_removal(device_id)

    async def on_device_update(self, snapshot: DeviceSnapshot) -> None:
        """Project ``snapshot`` and publish each attribute that changed, in order.

        A snapshot that cannot be projected is reported and dropped.
        """
        lp = f"{self.lp}update:"
        device_id = snapshot.instance_id
        try:
            if device_id is None:
                msg = "snapshot has no instance id"
                raise MalformedSnapshotError(msg)
            attributes = self.projector.project(snapshot)
            logger.debug(
                "%s device %s (%s): %d attributes",
                lp,
                device_id,
                snapshot.type_token,
                len(attributes),
                extra={"device_id": device_id},
            )
            for attribute in attributes:
                await self.publisher.publish_if_changed(device_id, attribute.key, attribute.value, attribute.base_path)
        except Exception as e:
            record_event("updated", "failed")
            self.reporter.report(ErrorContext(component="DeviceProjector", device_id=device_id), e)
            return
        record_event("updated", "ok")

    def on_device_removal(self, device_id: DeviceId) -> None:
        logger.info("%s Device removed: %s", self.lp, device_id, extra={"device_id": device_id})
        record_event("removed", "ok")

    async def stop(self) -> None:
        """Stop the source, finish queued events, then close the sink."""
        lp = f"{self.lp}stop:"
        if self._stopping:
            return
        self._stopping = True
        logger.info("%s Stopping bridge", lp)
        try:
            await self.source.stop()
        finally:
            if self._consumer is not None:
                self.queue.put_nowait(None)
                await self._consumer
            await self.sink.stop()
        logger.info("%s Bridge stopped", lp)

    async def wait_closed(self) -> None:
        if self._consumer is not None:
            await self._consumer
