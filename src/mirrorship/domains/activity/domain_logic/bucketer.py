"""Date-range bucketing: raw records -> gap-free daily series."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from mirrorship.domains.activity.domain_logic.errors import InvalidRangeError
from mirrorship.domains.activity.domain_logic.levels import (
    GITHUB_LEVELS,
    LevelConfig,
    map_level,
)
from mirrorship.domains.activity.domain_logic.models import (
    ActivitySeries,
    DailyActivity,
    RawActivityRecord,
)


def today_in(timezone_name: str = "UTC") -> date:
    """Current calendar day in an IANA timezone."""
    return datetime.now(ZoneInfo(timezone_name)).date()


def iter_days(start_date: date, end_date: date) -> Iterable[date]:
    """Yield every calendar day from ``start_date`` to ``end_date`` inclusive."""
    for offset in range((end_date - start_date).days + 1):
        yield start_date + timedelta(days=offset)


def build_series(
    records: Iterable[RawActivityRecord],
    start_date: date,
    end_date: date,
    *,
    level_config: LevelConfig = GITHUB_LEVELS,
    source_id: str | None = None,
) -> ActivitySeries:
    """Bucket records into one entry per day of ``[start_date, end_date]``.

    Records on the same day are summed; records outside the range are
    ignored; days without a record get ``count=0, level=0``.

    Args:
        records: Raw records for a single (user, source).
        start_date: First day of the range (inclusive).
        end_date: Last day of the range (inclusive).
        level_config: Thresholds used to compute each day's level.
        source_id: Series label. Defaults to the first record's source.

    Raises:
        InvalidRangeError: If ``start_date > end_date``.
    """
    if start_date > end_date:
        raise InvalidRangeError(
            f"start date {start_date.isoformat()} is after end date {end_date.isoformat()}"
        )

    counts: dict[date, int] = defaultdict(int)
    for record in records:
        if source_id is None:
            source_id = record.source_id
        if start_date <= record.date <= end_date:
            counts[record.date] += record.count

    days = []
    for day in iter_days(start_date, end_date):
        if day in counts:
            count = counts[day]
            days.append(DailyActivity(day, count, map_level(count, level_config)))
        else:
            days.append(DailyActivity(day, 0, 0))

    return ActivitySeries(source_id=source_id or "", days=tuple(days))
