"""MCP tools for reading activity heatmaps, streaks and motivation.

Everything here is computed per call from the stored raw activity; nothing
derived is persisted.
"""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from mirrorship.domains.activity.domain_logic.bucketer import today_in
from mirrorship.domains.activity.domain_logic.errors import (
    InvalidRangeError,
    SourceUnavailableError,
)
from mirrorship.domains.activity.domain_logic.models import SourceSummary
from mirrorship.domains.activity.domain_logic.motivation import select_motivation

if TYPE_CHECKING:
    from mirrorship.domains.activity.domain_logic.aggregator import ActivityAggregator

logger = logging.getLogger(__name__)


def register_dashboard_tools(
    mcp: FastMCP,
    aggregator: ActivityAggregator,
    *,
    dashboard_days: int = 365,
    daily_goal: int = 15,
    timezone_name: str = "UTC",
) -> None:
    """Register dashboard tools on the MCP server."""

    @mcp.tool
    async def activity_dashboard(
        ctx: Context,
        user_id: str,
        days: int = dashboard_days,
    ) -> str:
        """Heatmaps, streaks and totals for every source a user has.

        A source that cannot be read is returned with ``available: false``
        and an empty heatmap; the others are unaffected.

        Args:
            user_id: Whose dashboard to build.
            days: How many days back from today to include (default: 365).
        """
        try:
            aggregate = aggregator.build_dashboard(
                user_id, days=days, today=today_in(timezone_name)
            )
        except InvalidRangeError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        return json.dumps({"status": "ok", "user_id": user_id, **aggregate.to_dict()})

    @mcp.tool
    async def source_activity(
        ctx: Context,
        user_id: str,
        source_id: str,
        start_date: str = "",
        end_date: str = "",
    ) -> str:
        """Heatmap and streak stats for one source over a date range.

        Args:
            user_id: Whose activity to read.
            source_id: 'github', 'leetcode', 'youtube' or 'diary'.
            start_date: First day, ISO 8601 (default: a year before end_date).
            end_date: Last day, ISO 8601 (default: today).
        """
        today = today_in(timezone_name)
        try:
            end = date.fromisoformat(end_date) if end_date else today
            start = (
                date.fromisoformat(start_date)
                if start_date
                else end - timedelta(days=dashboard_days - 1)
            )
        except ValueError as exc:
            return json.dumps({"status": "error", "message": f"Invalid date: {exc}"})

        try:
            summary = aggregator.summarize_source(user_id, source_id, start, end, today)
        except InvalidRangeError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        except SourceUnavailableError as exc:
            logger.info("Source %s unavailable for %s: %s", source_id, user_id, exc.reason)
            return json.dumps({
                "status": "unavailable",
                **SourceSummary.unavailable(source_id, exc.reason).to_dict(),
            })

        return json.dumps({
            "status": "ok",
            "date_range": {"from": start.isoformat(), "to": end.isoformat()},
            **summary.to_dict(),
        })

    @mcp.tool
    async def activity_motivation(
        ctx: Context,
        user_id: str,
        source_id: str = "",
        goal: int = daily_goal,
    ) -> str:
        """Today's nudge: urgency tier, message and suggested action.

        Args:
            user_id: Whose progress to assess.
            source_id: Limit to one source. Empty means all available sources,
                using their combined count today and the longest current streak.
            goal: Daily target count (default: 15).
        """
        today = today_in(timezone_name)
        try:
            if source_id:
                summary = aggregator.summarize_source(
                    user_id, source_id, today - timedelta(days=dashboard_days - 1), today, today
                )
                todays_count = summary.series.count_on(today)
                streak = summary.stats.current_streak
            else:
                aggregate = aggregator.build_dashboard(user_id, days=dashboard_days, today=today)
                todays_count = aggregate.totals.today
                streak = max(
                    (s.stats.current_streak for s in aggregate.sources.values() if s.available),
                    default=0,
                )
            motivation = select_motivation(todays_count, streak, goal)
        except SourceUnavailableError as exc:
            return json.dumps({"status": "unavailable", "source_id": source_id, "reason": exc.reason})
        except ValueError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        return json.dumps({
            "status": "ok",
            "today": today.isoformat(),
            "todays_count": todays_count,
            "current_streak": streak,
            "daily_goal": goal,
            **motivation.to_dict(),
        })
