"""
Unit tests for minute-of-day interval helpers.
"""

from plancal.utils.interval_utils import (
    TimeInterval,
    clip_intervals,
    merge_intervals,
    subtract_intervals,
)


def _pairs(intervals):
    return [(i.start_minutes, i.end_minutes) for i in intervals]


class TestMergeIntervals:
    def test_overlapping_and_touching_spans_join(self):
        merged = merge_intervals(
            [TimeInterval(600, 660), TimeInterval(540, 600), TimeInterval(650, 700)]
        )
        assert _pairs(merged) == [(540, 700)]

    def test_disjoint_spans_sorted(self):
        merged = merge_intervals([TimeInterval(800, 900), TimeInterval(540, 600)])
        assert _pairs(merged) == [(540, 600), (800, 900)]

    def test_empty_spans_dropped(self):
        assert merge_intervals([TimeInterval(600, 600), TimeInterval(700, 650)]) == []

    def test_merge_is_idempotent(self):
        raw = [
            TimeInterval(900, 960),
            TimeInterval(540, 600),
            TimeInterval(590, 620),
            TimeInterval(1000, 1440),
            TimeInterval(0, 30),
        ]
        once = merge_intervals(raw)
        assert merge_intervals(once) == once

    def test_input_not_mutated(self):
        raw = [TimeInterval(540, 600), TimeInterval(600, 660)]
        merge_intervals(raw)
        assert _pairs(raw) == [(540, 600), (600, 660)]


class TestSubtractIntervals:
    def test_lunch_splits_workday(self):
        result = subtract_intervals([TimeInterval(540, 1020)], [TimeInterval(720, 780)])
        assert _pairs(result) == [(540, 720), (780, 1020)]

    def test_block_covering_everything(self):
        assert subtract_intervals([TimeInterval(540, 600)], [TimeInterval(500, 700)]) == []

    def test_no_blocks_returns_copies(self):
        base = [TimeInterval(540, 600)]
        result = subtract_intervals(base, [])
        assert result == base
        assert result[0] is not base[0]


def test_clip_drops_earlier_time():
    result = clip_intervals([TimeInterval(540, 720), TimeInterval(780, 1020)], 800)
    assert _pairs(result) == [(800, 1020)]
