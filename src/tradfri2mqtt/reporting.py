"""Error reporting for failures that must not interrupt the event stream."""

from __future__ import annotations

from tradfri2mqtt.logging_abstraction import get_logger
from tradfri2mqtt.metrics import record_report
from tradfri2mqtt.structs import ErrorContext

logger = get_logger(__name__)


class LoggingErrorReporter:
    """Writes each report as an ERROR log line carrying the full context."""

    lp: str = "reporter:"

    def report(self, context: ErrorContext, cause: BaseException) -> None:
        record_report(context.component)
        logger.error(
            "%s %s failed for device %s key %r: %s",
            self.lp,
            context.component,
            context.device_id,
            context.key,
            cause,
            extra={**context.as_dict(), "cause": type(cause).__name__},
        )
