"""Unit tests for duration segment arithmetic."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from tracklines.core.clock import SystemClock, ensure_utc
from tracklines.core.enums import LineState
from tracklines.domain.durations import (
    find_active,
    line_state,
    open_segments,
    segment_seconds,
    sort_newest_started_first,
    total_elapsed_seconds,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def segment(id, start_min, end_min=None, deleted=False):
    return SimpleNamespace(
        id=id,
        started_at=T0 + timedelta(minutes=start_min),
        ended_at=None if end_min is None else T0 + timedelta(minutes=end_min),
        is_deleted=deleted,
    )


@pytest.mark.unit
class TestSegments:
    def test_total_elapsed_uses_now_for_open_segment(self):
        segments = [segment(1, 0, 10), segment(2, 20)]
        now = T0 + timedelta(minutes=25)

        assert total_elapsed_seconds(segments, now) == 15 * 60

    def test_deleted_segments_are_ignored(self):
        segments = [segment(1, 0, 10), segment(2, 20, deleted=True)]

        assert total_elapsed_seconds(segments, T0 + timedelta(hours=1)) == 10 * 60
        assert open_segments(segments) == []
        assert line_state(segments) == LineState.PAUSED

    def test_segment_length_never_negative(self):
        backwards = segment(1, 10, 5)
        assert segment_seconds(backwards, T0) == 0.0

        running = segment(2, 10)
        assert segment_seconds(running, T0) == 0.0

    def test_find_active(self):
        assert find_active([segment(1, 0, 5)]) is None

        active = segment(2, 6)
        assert find_active([segment(1, 0, 5), active]) is active
        assert line_state([segment(1, 0, 5), active]) == LineState.RUNNING

    def test_find_active_reports_latest_when_invariant_broken(self):
        older = segment(1, 0)
        newer = segment(2, 5)

        assert find_active([newer, older]) is newer

    def test_sort_newest_started_first(self):
        a, b, c = segment(1, 0, 1), segment(2, 5, 6), segment(3, 5)

        assert [s.id for s in sort_newest_started_first([a, b, c])] == [3, 2, 1]

    def test_naive_timestamps_are_utc(self):
        naive = SimpleNamespace(
            id=1,
            started_at=datetime(2024, 3, 1, 9, 0),
            ended_at=datetime(2024, 3, 1, 9, 30),
            is_deleted=False,
        )
        assert segment_seconds(naive, T0) == 30 * 60


@pytest.mark.unit
class TestClock:
    def test_system_clock_is_aware_utc(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)

    def test_system_clock_never_goes_backwards(self):
        clock = SystemClock()
        clock._last = datetime.now(timezone.utc) + timedelta(hours=1)

        assert clock.now() == clock._last

    def test_ensure_utc_converts_offsets(self):
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2024, 3, 1, 11, 0, tzinfo=plus_two)

        assert ensure_utc(value) == T0
        assert ensure_utc(value).tzinfo == timezone.utc
        assert ensure_utc(None) is None
