from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any


_DURATION_RE = re.compile(r"^(\d+)([smhd])$", flags=re.IGNORECASE)

_UNIT_MS: dict[str, int] = {
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration_ms(value: Any, fallback_ms: int) -> int:
    """Parse a duration expression like "30s", "15m", "1h" or "2d" into milliseconds.

    Plain numbers are taken as milliseconds. Anything unparseable (or a zero
    duration) yields ``fallback_ms``; callers rely on this to keep startup
    resilient to malformed environment values.
    """
    if isinstance(value, bool):
        return fallback_ms
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return fallback_ms
        return int(value)
    if not isinstance(value, str):
        return fallback_ms

    match = _DURATION_RE.fullmatch(value.strip())
    if match is None:
        return fallback_ms

    amount = int(match.group(1))
    unit = match.group(2).lower()
    return amount * _UNIT_MS[unit] or fallback_ms


def parse_duration_seconds(value: Any, fallback_seconds: int) -> int:
    return parse_duration_ms(value, fallback_seconds * 1000) // 1000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def seconds_until(moment: datetime | None, now: datetime) -> int:
    """Whole seconds from ``now`` until ``moment``, rounded up, never negative."""
    if moment is None:
        return 0
    delta_ms = (as_utc(moment) - now).total_seconds() * 1000.0
    if delta_ms <= 0:
        return 0
    return int(math.ceil(delta_ms / 1000.0))
