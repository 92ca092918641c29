"""
Core Module - Clock and Chain Time.

============================================================
RESPONSIBILITY
============================================================
Provides a testable clock and the time arithmetic used by the
sync loop and the reporting jobs.

- Wall-clock "now" and "today" (mockable)
- Parsing of chain-reported block times
- Minute truncation for the aggregation trigger
- Aggregation windows and day boundaries

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only
- Stored timestamps are naive UTC datetimes
- Block times carry nanoseconds; we keep microseconds

============================================================
"""

import re
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for system clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    def today(self) -> date:
        """Get current UTC date."""
        return self.now().date()

    def start_of_today(self) -> datetime:
        """Midnight of the current UTC day, as naive UTC."""
        return start_of_day(to_naive_utc(self.now()))


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """Production clock using actual system time."""

    def now(self) -> datetime:
        """Get current UTC datetime."""
        return datetime.now(timezone.utc)


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time (defaults to current UTC)
        """
        self._time = _as_aware(initial_time or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Get current (mocked) datetime."""
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        """Set the current time."""
        with self._lock:
            self._time = _as_aware(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)


def _as_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ============================================================
# CHAIN TIME
# ============================================================

# 2021-10-01T12:00:30.123456789Z -> groups: base, fraction, offset
_CHAIN_TIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})?$"
)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert any datetime to naive UTC (naive input is assumed UTC)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_chain_time(value: str) -> datetime:
    """
    Parse an RFC 3339 block time into naive UTC.

    Fractional seconds beyond microseconds are truncated.

    Raises:
        ValueError: If the string is not an RFC 3339 timestamp
    """
    match = _CHAIN_TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid chain timestamp: {value!r}")

    base, fraction, offset = match.groups()
    text = base
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    if offset and offset != "Z":
        text += offset

    return to_naive_utc(datetime.fromisoformat(text))


def truncate_to_minute(dt: datetime) -> datetime:
    """Drop seconds and microseconds."""
    return dt.replace(second=0, microsecond=0)


def crossed_minute_boundary(previous: datetime, current: datetime) -> bool:
    """True when the two timestamps fall into different wall-clock minutes."""
    return truncate_to_minute(to_naive_utc(previous)) != truncate_to_minute(to_naive_utc(current))


def last_minute_window(window_end: datetime) -> Tuple[datetime, datetime]:
    """
    The full minute that ended at or before window_end.

    12:01:10 -> [12:00:00, 12:01:00)
    """
    end = truncate_to_minute(to_naive_utc(window_end))
    return end - timedelta(minutes=1), end


def start_of_day(dt: datetime) -> datetime:
    """Midnight of dt's day."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "to_naive_utc",
    "parse_chain_time",
    "truncate_to_minute",
    "crossed_minute_boundary",
    "last_minute_window",
    "start_of_day",
]
