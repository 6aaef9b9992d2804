"""Streak statistics over a daily activity series.

Pure functions, no I/O. A single semantic is used everywhere:

* ``current_streak`` walks backward from the anchor day, where the anchor is
  ``today`` or the series' last day if the series stops before today. An
  inactive anchor day means a current streak of 0; a streak that ended
  yesterday does not carry over into today.
* ``best_streak`` is the longest run of active days anywhere in the series.
* ``this_week`` sums counts from the most recent Sunday through ``today``.
"""

from __future__ import annotations

from datetime import date, timedelta

from mirrorship.domains.activity.domain_logic.models import ActivitySeries, StreakStats


def week_start(day: date) -> date:
    """Return the Sunday on or before ``day``."""
    # date.weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def compute_streaks(series: ActivitySeries, today: date | None = None) -> StreakStats:
    """Compute current/best streaks, this week's total and active days.

    Args:
        series: Gap-free daily series for one source.
        today: Reference day (defaults to ``date.today()``).

    Returns:
        StreakStats; all zeros for an empty series.
    """
    if not series.days:
        return StreakStats()
    if today is None:
        today = date.today()

    return StreakStats(
        current_streak=_current_streak(series, today),
        best_streak=_best_streak(series),
        this_week=_this_week(series, today),
        total_active=series.active_days,
    )


def _current_streak(series: ActivitySeries, today: date) -> int:
    first = series.days[0].date
    last = series.days[-1].date
    if today < first:
        return 0

    index = (min(today, last) - first).days
    streak = 0
    while index >= 0 and series.days[index].count > 0:
        streak += 1
        index -= 1
    return streak


def _best_streak(series: ActivitySeries) -> int:
    best = 0
    running = 0
    for day in series.days:
        if day.count > 0:
            running += 1
            best = max(best, running)
        else:
            running = 0
    return best


def _this_week(series: ActivitySeries, today: date) -> int:
    start = week_start(today)
    return sum(d.count for d in series.days if start <= d.date <= today)
