"""Helpers shared by provider parsers: timestamps to days, days to records."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timezone, tzinfo
from typing import Iterable

from mirrorship.domains.activity.domain_logic.models import ActivityKind, RawActivityRecord


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp such as ``2024-01-02T15:04:05Z``.

    Naive timestamps are taken as UTC.

    Raises:
        ValueError: If ``value`` is not ISO 8601.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def local_day(moment: datetime, tz: tzinfo) -> date:
    """Calendar day of ``moment`` in the reporting timezone."""
    return moment.astimezone(tz).date()


def collapse_daily(
    counts: Iterable[tuple[date, int]],
    source_id: str,
    kind: ActivityKind,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[RawActivityRecord]:
    """Sum ``(day, count)`` pairs into one record per day, oldest first.

    Days outside ``[start_date, end_date]`` are dropped when bounds are given.
    """
    daily: dict[date, int] = defaultdict(int)
    for day, count in counts:
        if start_date is not None and day < start_date:
            continue
        if end_date is not None and day > end_date:
            continue
        daily[day] += count

    return [
        RawActivityRecord(date=day, source_id=source_id, count=daily[day], kind=kind)
        for day in sorted(daily)
    ]
