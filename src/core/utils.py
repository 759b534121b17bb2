import math
from typing import Any


def coerce_seconds(value: Any) -> float:
    """
    Parse a raw numeric field (string, number or None) into seconds.
    Anything non-numeric, negative or non-finite becomes 0.0.
    AppleScript may hand back a decimal comma depending on locale, so "12,5" is accepted too.
    """
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return 0.0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(seconds) or seconds < 0:
        return 0.0
    return seconds


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def format_time(seconds: float) -> str:
    """Formats seconds as m:ss for the overlay labels."""
    s = int(max(0.0, float(seconds)))
    m = s // 60
    s = s % 60
    return f"{m}:{s:02d}"
