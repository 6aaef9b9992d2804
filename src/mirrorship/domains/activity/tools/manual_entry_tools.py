"""MCP tools for manual activity entry.

Sources that are not synced from a platform (the diary by default) are
filled in by hand: each call adds to, or replaces, one day's count.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import TYPE_CHECKING, Mapping

from fastmcp import Context, FastMCP

from mirrorship.domains.activity.domain_logic.bucketer import today_in
from mirrorship.domains.activity.domain_logic.levels import map_level
from mirrorship.domains.activity.domain_logic.models import RawActivityRecord

if TYPE_CHECKING:
    from mirrorship.core.storage.repository import ActivityRepository
    from mirrorship.domains.activity.domain_logic.source_config import SourceConfig

logger = logging.getLogger(__name__)


def register_manual_entry_tools(
    mcp: FastMCP,
    repository: ActivityRepository,
    source_configs: Mapping[str, SourceConfig],
    *,
    timezone_name: str = "UTC",
) -> None:
    """Register manual activity entry tools on the MCP server."""

    manual_sources = sorted(sid for sid, cfg in source_configs.items() if not cfg.requires_link)

    @mcp.tool
    async def record_activity(
        ctx: Context,
        user_id: str,
        source_id: str = "diary",
        count: int = 1,
        activity_date: str = "",
        replace: bool = False,
    ) -> str:
        """Log activity for one day on a manually tracked source.

        Args:
            user_id: Whose activity this is.
            source_id: A manually tracked source (default: 'diary').
            count: How many entries to add (or the day's total when replacing).
            activity_date: Day of the activity, ISO 8601 (default: today).
            replace: Set the day's count to ``count`` instead of adding to it.
        """
        config = source_configs.get(source_id)
        if config is None or config.requires_link:
            return json.dumps({
                "status": "error",
                "message": (
                    f"{source_id!r} is not a manually tracked source. "
                    f"Choose one of: {', '.join(manual_sources)}."
                ),
            })
        if count < 0:
            return json.dumps({"status": "error", "message": "count must be non-negative."})

        try:
            day = date.fromisoformat(activity_date) if activity_date else today_in(timezone_name)
        except ValueError as exc:
            return json.dumps({"status": "error", "message": f"Invalid date: {exc}"})

        if replace:
            repository.replace_raw_activity(
                user_id,
                source_id,
                [RawActivityRecord(date=day, source_id=source_id, count=count, kind=config.kind)],
            )
            total = count
        else:
            total = repository.add_activity(user_id, source_id, day, count, config.kind)

        logger.info("Manual %s entry for %s on %s: total %d", source_id, user_id, day, total)
        return json.dumps({
            "status": "saved",
            "source_id": source_id,
            "date": day.isoformat(),
            "count": total,
            "level": map_level(total, config.levels),
        })
