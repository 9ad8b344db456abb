from __future__ import annotations

import datetime
import math
from enum import Enum


def render_value(value: object) -> str:
    """Render a device field to the string published on the broker.

    ``None`` becomes ``""``, booleans ``"true"``/``"false"``, integral floats
    drop their ``.0`` and enums publish their value.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return render_value(value.value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def epoch_to_iso(epoch_seconds: float | None) -> str:
    """Convert Unix epoch seconds to ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (UTC).

    Returns ``""`` for a missing value or one outside the representable range.
    """
    if epoch_seconds is None:
        return ""
    try:
        dt = datetime.datetime.fromtimestamp(epoch_seconds, tz=datetime.UTC)
    except (OverflowError, ValueError, OSError):
        return ""
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def scale_to_percent(raw: float | None, low: float, high: float) -> float | None:
    """Map ``raw`` from ``[low, high]`` onto 0-100, rounded to one decimal."""
    if raw is None:
        return None
    clamped = min(max(raw, low), high)
    return round((clamped - low) / (high - low) * 100, 1)
