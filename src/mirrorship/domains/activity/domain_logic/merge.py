"""Cross-source merge into a dashboard aggregate.

A failing source never fails the aggregate: its entry becomes an
unavailable summary and the remaining sources pass through untouched.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Mapping, Union

from mirrorship.domains.activity.domain_logic.errors import SourceUnavailableError
from mirrorship.domains.activity.domain_logic.models import (
    DashboardAggregate,
    DashboardTotals,
    SourceSummary,
)
from mirrorship.domains.activity.domain_logic.streaks import week_start

logger = logging.getLogger(__name__)

SummaryOrError = Union[SourceSummary, BaseException]


def merge_sources(
    summaries: Mapping[str, SummaryOrError],
    today: date | None = None,
) -> DashboardAggregate:
    """Assemble per-source summaries (or their failures) into one aggregate.

    Args:
        summaries: source_id -> SourceSummary, or the exception raised while
            computing it.
        today: Reference day for the cross-source totals.

    Returns:
        DashboardAggregate with every source present, in input order.
    """
    if today is None:
        today = date.today()

    sources: dict[str, SourceSummary] = {}
    for source_id, result in summaries.items():
        if isinstance(result, SourceSummary):
            sources[source_id] = result
        elif isinstance(result, SourceUnavailableError):
            logger.warning("Source %s unavailable: %s", source_id, result.reason)
            sources[source_id] = SourceSummary.unavailable(source_id, result.reason)
        elif isinstance(result, Exception):
            logger.error(
                "Source %s failed: %s", source_id, result, exc_info=result
            )
            sources[source_id] = SourceSummary.unavailable(
                source_id, f"internal error ({type(result).__name__})"
            )
        else:
            # KeyboardInterrupt, CancelledError and friends are not ours to absorb.
            raise result

    return DashboardAggregate(
        sources=sources,
        totals=_totals(sources, today),
        as_of=today,
    )


def _totals(sources: Mapping[str, SourceSummary], today: date) -> DashboardTotals:
    month_start = today.replace(day=1)
    sunday = week_start(today)
    earliest = min(month_start, sunday)

    today_total = 0
    week_total = 0
    month_total = 0
    for summary in sources.values():
        if not summary.available:
            continue
        for day in summary.series:
            if day.date > today or day.date < earliest:
                continue
            if day.date == today:
                today_total += day.count
            if day.date >= sunday:
                week_total += day.count
            if day.date >= month_start:
                month_total += day.count

    return DashboardTotals(
        today=today_total,
        this_week=week_total,
        this_month=month_total,
        available_sources=tuple(s for s, v in sources.items() if v.available),
        unavailable_sources=tuple(s for s, v in sources.items() if not v.available),
    )
