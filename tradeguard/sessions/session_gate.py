"""
Session Gate
Decides whether the current time falls inside the configured trading windows.

Windows are given as "HH:MM-HH:MM" ranges in the trading timezone. A range
whose end is not after its start rolls over midnight. Overlapping ranges are
merged once, when the gate is built.
"""

from datetime import datetime
from typing import List, NamedTuple, Optional, Tuple

import pytz

from ..bot_logger import get_logger
from ..core.constants import (
    SEGMENT_LONDON,
    SEGMENT_NY_LATE,
    SEGMENT_OUT,
    SEGMENT_OVERLAP,
)
from ..utils.config_loader import DEFAULT_SESSIONS

MINUTES_PER_DAY = 1440


class Interval(NamedTuple):
    """Half-open [start, end) in minutes since local midnight. end may exceed 1440."""
    start: int
    end: int


def parse_raw_sessions(raw: Optional[str]) -> List[Tuple[str, str]]:
    """
    Split "14:00-23:00,19:00-04:00" into (start, end) string pairs.

    Blank entries and entries without both ends are dropped.
    """
    slots = []
    for chunk in (raw or "").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = chunk.split("-")
        if len(parts) < 2:
            continue
        start, end = parts[0].strip(), parts[1].strip()
        if not start or not end:
            continue
        slots.append((start, end))
    return slots


def to_minutes(hhmm: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hours, _, minutes = hhmm.partition(":")
    h = int(hours)
    m = int(minutes) if minutes else 0
    if not (0 <= h <= 24 and 0 <= m < 60):
        raise ValueError(f"Invalid time of day: {hhmm}")
    return h * 60 + m


def expand_slot(slot: Tuple[str, str]) -> Interval:
    """Convert a slot to minutes, rolling the end past midnight when needed."""
    start = to_minutes(slot[0])
    end = to_minutes(slot[1])
    if end <= start:
        end += MINUTES_PER_DAY
    return Interval(start, end)


def merge_intervals(intervals: List[Interval]) -> List[Interval]:
    """Sort by start and coalesce overlapping or touching intervals."""
    if not intervals:
        return []
    ordered = sorted(intervals, key=lambda iv: iv.start)
    merged = [ordered[0]]
    for cur in ordered[1:]:
        last = merged[-1]
        if cur.start <= last.end:
            merged[-1] = Interval(last.start, max(last.end, cur.end))
        else:
            merged.append(cur)
    return merged


def build_windows(raw: Optional[str]) -> List[Interval]:
    """Parse, expand and merge a session string. Malformed slots are skipped."""
    expanded = []
    for slot in parse_raw_sessions(raw):
        try:
            expanded.append(expand_slot(slot))
        except ValueError:
            continue
    return merge_intervals(expanded)


class SessionGate:
    """Time-of-day gate for the analysis cycle."""

    def __init__(self, sessions: str = DEFAULT_SESSIONS, timezone: str = "Asia/Jakarta"):
        """
        Initialize session gate.

        Args:
            sessions: Comma separated "HH:MM-HH:MM" ranges
            timezone: Trading timezone name
        """
        self.logger = get_logger()
        self.tz = pytz.timezone(timezone)
        self.windows = build_windows(sessions)
        if not self.windows:
            self.logger.warning(f"No valid trading sessions in {sessions!r}; gate always closed")
        else:
            self.logger.debug(f"Session windows (minutes): {self.windows}")

    def _local_minutes(self, now: Optional[datetime]) -> int:
        if now is None:
            now = datetime.now(pytz.utc)
        elif now.tzinfo is None:
            now = pytz.utc.localize(now)
        local = now.astimezone(self.tz)
        return local.hour * 60 + local.minute

    def is_within_session(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether `now` is inside any trading window.

        Args:
            now: Aware datetime (naive values are taken as UTC). Defaults to now.
        """
        minutes = self._local_minutes(now)
        for window in self.windows:
            m = minutes
            if m < window.start:
                m += MINUTES_PER_DAY
            if window.start <= m < window.end:
                return True
        return False

    def classify_segment(self, now: Optional[datetime] = None) -> str:
        """Name the market segment for `now` (local trading time)."""
        minutes = self._local_minutes(now)
        if 14 * 60 <= minutes < 19 * 60:
            return SEGMENT_LONDON
        if 19 * 60 <= minutes < 23 * 60:
            return SEGMENT_OVERLAP
        if minutes >= 23 * 60 or minutes < 4 * 60:
            return SEGMENT_NY_LATE
        return SEGMENT_OUT
