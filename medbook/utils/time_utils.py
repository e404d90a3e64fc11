"""HH:MM helpers shared by the schedule generator and availability grouping."""

import re
from medbook.core.exceptions import ConfigurationError

_HHMM = re.compile(r"^(\d{2}):(\d{2})$")

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(t: str, allow_end_of_day: bool = False) -> int:
    """Convert HH:MM string to minutes since midnight.

    "24:00" is accepted only as an end bound (``allow_end_of_day``).
    Raises ConfigurationError for anything malformed.
    """
    match = _HHMM.match(t or "")
    if not match:
        raise ConfigurationError(f"Malformed time string: {t!r} (expected HH:MM)")

    h, m = int(match.group(1)), int(match.group(2))
    if allow_end_of_day and h == 24 and m == 0:
        return MINUTES_PER_DAY
    if h > 23 or m > 59:
        raise ConfigurationError(f"Time out of range: {t!r}")
    return h * 60 + m


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to HH:MM string."""
    h = minutes // 60
    m = minutes % 60
    return f"{h:02d}:{m:02d}"


def ranges_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open minute ranges [start, end) intersect."""
    return not (end_a <= start_b or start_a >= end_b)
