"""
Minute-of-day interval helpers shared by availability and placement.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class TimeInterval:
    start_minutes: int
    end_minutes: int

    @property
    def length(self) -> int:
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes


def clone_intervals(intervals: list[TimeInterval]) -> list[TimeInterval]:
    return [TimeInterval(interval.start_minutes, interval.end_minutes) for interval in intervals]


def merge_intervals(intervals: list[TimeInterval]) -> list[TimeInterval]:
    """
    Union of intervals: sorted by start, touching or overlapping spans joined.

    Empty intervals are dropped. Merging an already merged list returns an
    equal list.
    """
    ordered = sorted(
        (interval for interval in intervals if interval.end_minutes > interval.start_minutes),
        key=lambda interval: (interval.start_minutes, interval.end_minutes),
    )
    merged: list[TimeInterval] = []
    for interval in ordered:
        if merged and interval.start_minutes <= merged[-1].end_minutes:
            merged[-1].end_minutes = max(merged[-1].end_minutes, interval.end_minutes)
        else:
            merged.append(TimeInterval(interval.start_minutes, interval.end_minutes))
    return merged


def subtract_intervals(base: list[TimeInterval], remove: list[TimeInterval]) -> list[TimeInterval]:
    if not remove:
        return clone_intervals(base)
    intervals = clone_intervals(base)
    for block in remove:
        next_intervals: list[TimeInterval] = []
        for interval in intervals:
            if block.end_minutes <= interval.start_minutes or block.start_minutes >= interval.end_minutes:
                next_intervals.append(interval)
                continue
            if block.start_minutes > interval.start_minutes:
                next_intervals.append(
                    TimeInterval(interval.start_minutes, min(block.start_minutes, interval.end_minutes))
                )
            if block.end_minutes < interval.end_minutes:
                next_intervals.append(
                    TimeInterval(max(block.end_minutes, interval.start_minutes), interval.end_minutes)
                )
        intervals = next_intervals
    return sorted(
        (interval for interval in intervals if interval.end_minutes > interval.start_minutes),
        key=lambda interval: interval.start_minutes,
    )


def clip_intervals(intervals: list[TimeInterval], start_minutes: int) -> list[TimeInterval]:
    """Drop everything before ``start_minutes``."""
    clipped: list[TimeInterval] = []
    for interval in intervals:
        if interval.end_minutes <= start_minutes:
            continue
        clipped.append(
            TimeInterval(max(interval.start_minutes, start_minutes), interval.end_minutes)
        )
    return clipped
