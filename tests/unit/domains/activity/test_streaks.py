"""Tests for streak statistics."""

from __future__ import annotations

from datetime import date, timedelta

from mirrorship.domains.activity.domain_logic.bucketer import build_series
from mirrorship.domains.activity.domain_logic.models import (
    ActivitySeries,
    RawActivityRecord,
    StreakStats,
)
from mirrorship.domains.activity.domain_logic.streaks import compute_streaks, week_start

START = date(2024, 1, 1)  # a Monday


def _series(counts: list[int], start: date = START) -> ActivitySeries:
    records = [
        RawActivityRecord(date=start + timedelta(days=i), source_id="leetcode", count=c)
        for i, c in enumerate(counts)
        if c
    ]
    return build_series(records, start, start + timedelta(days=len(counts) - 1))


class TestCurrentAndBestStreak:
    def test_ten_day_example(self):
        series = _series([1, 1, 1, 0, 2, 2, 0, 0, 3, 3])
        stats = compute_streaks(series, today=series.end)

        assert stats.current_streak == 2
        assert stats.best_streak == 3
        assert stats.total_active == 7

    def test_inactive_today_breaks_streak(self):
        series = _series([1, 1, 1, 0])
        stats = compute_streaks(series, today=series.end)
        assert stats.current_streak == 0
        assert stats.best_streak == 3

    def test_series_ending_before_today_anchors_on_last_day(self):
        series = _series([0, 1, 1])
        stats = compute_streaks(series, today=series.end + timedelta(days=5))
        assert stats.current_streak == 2

    def test_today_inside_series_ignores_later_days(self):
        series = _series([1, 1, 0, 1, 1, 1])
        stats = compute_streaks(series, today=START + timedelta(days=1))
        assert stats.current_streak == 2

    def test_today_before_series_start(self):
        series = _series([1, 1])
        stats = compute_streaks(series, today=START - timedelta(days=1))
        assert stats.current_streak == 0
        assert stats.this_week == 0

    def test_single_active_day_today(self):
        series = _series([0, 0, 4])
        stats = compute_streaks(series, today=series.end)
        assert stats.current_streak == 1
        assert stats.best_streak == 1

    def test_streak_runs_to_range_boundary(self):
        series = _series([2, 2, 2])
        assert compute_streaks(series, today=series.end).current_streak == 3


class TestThisWeek:
    def test_sums_from_sunday_through_today(self):
        # 2024-01-07 is a Sunday; today is Wednesday 2024-01-10
        series = _series([1, 1, 1, 0, 2, 2, 0, 0, 3, 3])
        stats = compute_streaks(series, today=date(2024, 1, 10))
        assert stats.this_week == 6

    def test_excludes_days_after_today(self):
        series = _series([5, 5, 5, 5, 5, 5, 5])  # Mon..Sun
        stats = compute_streaks(series, today=date(2024, 1, 3))
        # Week started Sunday 2023-12-31, outside the series
        assert stats.this_week == 15

    def test_week_start(self):
        assert week_start(date(2024, 1, 7)) == date(2024, 1, 7)  # Sunday
        assert week_start(date(2024, 1, 8)) == date(2024, 1, 7)  # Monday
        assert week_start(date(2024, 1, 13)) == date(2024, 1, 7)  # Saturday


class TestEdgeCases:
    def test_empty_series(self):
        assert compute_streaks(ActivitySeries(source_id="github")) == StreakStats()

    def test_all_zero_series(self):
        series = _series([0, 0, 0, 0])
        assert compute_streaks(series, today=series.end) == StreakStats(0, 0, 0, 0)

    def test_idempotent(self):
        series = _series([1, 0, 3, 3, 0, 1])
        today = series.end
        assert compute_streaks(series, today) == compute_streaks(series, today)

    def test_to_dict(self):
        stats = StreakStats(current_streak=2, best_streak=3, this_week=6, total_active=7)
        assert stats.to_dict() == {
            "current_streak": 2,
            "best_streak": 3,
            "this_week": 6,
            "total_active": 7,
        }
