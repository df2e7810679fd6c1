"""Half-open ``[start, end)`` instant intervals and the operations on them.

Everything here is pure and timezone-agnostic: callers pass comparable
datetimes (the engine uses aware UTC values throughout).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable


@dataclass(frozen=True, order=True)
class Interval:
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def overlaps(self, other: 'Interval') -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, other: 'Interval') -> bool:
        return self.start <= other.start and other.end <= self.end

    def clip(self, other: 'Interval') -> 'Interval':
        """The part of ``other`` inside this interval; may be empty."""
        return Interval(max(self.start, other.start), min(self.end, other.end))


def expand_by_buffer(interval: Interval, before_minutes: int, after_minutes: int) -> Interval:
    return Interval(
        interval.start - timedelta(minutes=before_minutes),
        interval.end + timedelta(minutes=after_minutes),
    )


def overlapping(intervals: Iterable[Interval], window: Interval) -> list[Interval]:
    return [interval for interval in intervals if interval.overlaps(window)]


def subtract(base: Interval, busy_intervals: Iterable[Interval]) -> list[Interval]:
    """Free segments of ``base`` left after removing every busy interval.

    Busy intervals may overlap each other and arrive in any order.
    """
    busy = [base.clip(interval) for interval in busy_intervals]
    busy = sorted(interval for interval in busy if not interval.is_empty)
    if not busy:
        return [base]

    free: list[Interval] = []
    cursor = base.start
    for interval in busy:
        if interval.start > cursor:
            free.append(Interval(cursor, interval.start))
        if interval.end > cursor:
            cursor = interval.end
        if cursor >= base.end:
            break

    if cursor < base.end:
        free.append(Interval(cursor, base.end))

    return free


def filter_by_min_duration(segments: Iterable[Interval], min_minutes: int) -> list[Interval]:
    threshold = timedelta(minutes=min_minutes)
    return [segment for segment in segments if segment.duration >= threshold]
