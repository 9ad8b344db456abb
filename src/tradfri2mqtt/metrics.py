"""Prometheus counters for the publish pipeline."""

from typing import Final

from prometheus_client import Counter, start_http_server  # type: ignore[import-untyped]

__all__ = [
    "record_cache_hit",
    "record_event",
    "record_publish",
    "record_report",
    "start_metrics_server",
]

tradfri_publish_total: Final = Counter(  # type: ignore[assignment]
    "tradfri_publish_total",
    "Attribute publishes handed to the broker",
    ["key", "outcome"],
)

tradfri_cache_hit_total: Final = Counter(  # type: ignore[assignment]
    "tradfri_cache_hit_total",
    "Attribute updates skipped because the value was unchanged",
    ["key"],
)

tradfri_device_event_total: Final = Counter(  # type: ignore[assignment]
    "tradfri_device_event_total",
    "Gateway events consumed by the bridge",
    ["kind", "outcome"],
)

tradfri_error_report_total: Final = Counter(  # type: ignore[assignment]
    "tradfri_error_report_total",
    "Failures handed to the error reporter",
    ["component"],
)


def record_publish(key: str, outcome: str) -> None:
    tradfri_publish_total.labels(key=key, outcome=outcome).inc()


def record_cache_hit(key: str) -> None:
    tradfri_cache_hit_total.labels(key=key).inc()


def record_event(kind: str, outcome: str) -> None:
    tradfri_device_event_total.labels(kind=kind, outcome=outcome).inc()


def record_report(component: str) -> None:
    tradfri_error_report_total.labels(component=component).inc()


def start_metrics_server(port: int) -> None:
    """Serve ``/metrics`` on ``port`` from a background thread."""
    start_http_server(port)
