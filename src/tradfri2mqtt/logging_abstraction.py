"""Structured logging for the bridge.

Every message can carry an ``extra`` mapping of context fields. The human
formatter appends them as ``key=value`` pairs; the JSON formatter nests them
under ``context`` so a log shipper can index device ids and topics.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from typing_extensions import override

__all__ = [
    "BridgeLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "get_logger",
    "set_level_all",
]

_CONTEXT_ATTR = "context_fields"


def _context_of(record: logging.LogRecord) -> Mapping[str, object] | None:
    fields = getattr(record, _CONTEXT_ATTR, None)
    if isinstance(fields, Mapping) and fields:
        return cast("Mapping[str, object]", fields)
    return None


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        from tradfri2mqtt.correlation import current_event_id

        payload: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "event_id": current_event_id(),
        }
        context = _context_of(record)
        if context is not None:
            payload["context"] = dict(context)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``timestamp level [module:line] [event] > message | key=value``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(event_tag)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        from tradfri2mqtt.correlation import current_event_id

        event_id = current_event_id()
        record.event_tag = f"[{event_id[:8]}]" if event_id else "[--------]"
        line = super().format(record)
        context = _context_of(record)
        if context is not None:
            line = f"{line} | " + " | ".join(f"{k}={v}" for k, v in context.items())
        return line


class BridgeLogger:
    """Thin wrapper over :class:`logging.Logger` accepting structured context.

    ``logger.info("%s published", lp, extra={"topic": topic})`` keeps the usual
    %-style arguments and attaches ``topic`` to the record for both formatters.
    """

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stdout",
    ) -> None:
        from tradfri2mqtt.const import TRADFRI_DEBUG

        self.name: str = name
        self.log_format: str = log_format
        self.logger: logging.Logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if TRADFRI_DEBUG else logging.INFO)
        if not self.logger.handlers:
            self._attach_handlers(json_file, human_output)

    def _attach_handlers(self, json_file: str | Path | None, human_output: str | None) -> None:
        level = self.logger.level

        if self.log_format in ("json", "both") and json_file:
            try:
                path = Path(json_file)
                path.parent.mkdir(parents=True, exist_ok=True)
                json_handler = logging.FileHandler(path, mode="a")
            except OSError as e:
                print(f"Warning: cannot open JSON log file {json_file}: {e}", file=sys.stderr)
            else:
                json_handler.setFormatter(JSONFormatter())
                json_handler.setLevel(level)
                self.logger.addHandler(json_handler)

        if self.log_format in ("human", "both"):
            target = human_output or "stdout"
            if target == "stdout":
                handler: logging.Handler = logging.StreamHandler(sys.stdout)
            elif target == "stderr":
                handler = logging.StreamHandler(sys.stderr)
            else:
                try:
                    path = Path(target)
                    path.parent.mkdir(parents=True, exist_ok=True)
                    handler = logging.FileHandler(path, mode="a")
                except OSError as e:
                    print(f"Warning: cannot open log file {target}: {e}", file=sys.stderr)
                    handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(HumanReadableFormatter())
            handler.setLevel(level)
            self.logger.addHandler(handler)

    def _log(
        self,
        level: int,
        msg: str,
        *args: object,
        extra: Mapping[str, object] | None = None,
        exc_info: bool = False,
    ) -> None:
        record_extra = {_CONTEXT_ATTR: dict(extra)} if extra else None
        self.logger.log(level, msg, *args, extra=record_extra, exc_info=exc_info)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, *args, extra=extra, exc_info=True)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


_loggers: dict[str, BridgeLogger] = {}


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> BridgeLogger:
    """Return the :class:`BridgeLogger` for ``name``, configured from the ``TRADFRI_LOG_*`` variables."""
    from tradfri2mqtt.const import (
        TRADFRI_LOG_FORMAT,
        TRADFRI_LOG_HUMAN_OUTPUT,
        TRADFRI_LOG_JSON_FILE,
    )

    if name not in _loggers:
        _loggers[name] = BridgeLogger(
            name=name,
            log_format=log_format or TRADFRI_LOG_FORMAT,
            json_file=json_file or TRADFRI_LOG_JSON_FILE,
            human_output=human_output or TRADFRI_LOG_HUMAN_OUTPUT,
        )
    return _loggers[name]


def set_level_all(level: int) -> None:
    """Apply ``level`` to every logger handed out by :func:`get_logger`."""
    for bridge_logger in _loggers.values():
        bridge_logger.set_level(level)
