"""Activity aggregator: builds per-source summaries and the dashboard.

Reads stored raw activity through an injected reader, runs it through the
bucketer and streak engine, and assembles the dashboard with
:func:`merge_sources`. Storage failures and missing links surface as
``SourceUnavailableError`` so one broken source never sinks the dashboard.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, timedelta
from typing import Mapping, Protocol

from mirrorship.core.storage.database import DatabaseError
from mirrorship.core.storage.encryption import EncryptionError
from mirrorship.core.storage.models import PlatformLink
from mirrorship.core.storage.repository import RepositoryError
from mirrorship.domains.activity.domain_logic.bucketer import build_series
from mirrorship.domains.activity.domain_logic.errors import (
    InvalidRangeError,
    SourceUnavailableError,
)
from mirrorship.domains.activity.domain_logic.merge import SummaryOrError, merge_sources
from mirrorship.domains.activity.domain_logic.models import (
    DashboardAggregate,
    RawActivityRecord,
    SourceMetadata,
    SourceSummary,
)
from mirrorship.domains.activity.domain_logic.source_config import SourceConfig
from mirrorship.domains.activity.domain_logic.streaks import compute_streaks

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (sqlite3.Error, DatabaseError, RepositoryError, EncryptionError)


class ActivityReader(Protocol):
    """Read side of the activity store used by the aggregator."""

    def get_raw_activity(
        self, user_id: str, source_id: str, start_date: date, end_date: date
    ) -> list[RawActivityRecord]:
        ...

    def get_platform_link(self, user_id: str, source_id: str) -> PlatformLink | None:
        ...

    def get_platform_links(self, user_id: str) -> list[PlatformLink]:
        ...


class ActivityAggregator:
    """Computes source summaries and dashboards for one user at a time.

    Usage::

        aggregator = ActivityAggregator(repository, load_source_configs())
        dashboard = aggregator.build_dashboard("user-1", days=365)
    """

    def __init__(
        self,
        reader: ActivityReader,
        source_configs: Mapping[str, SourceConfig],
    ) -> None:
        self._reader = reader
        self._configs = dict(source_configs)

    @property
    def source_ids(self) -> list[str]:
        return list(self._configs)

    def summarize_source(
        self,
        user_id: str,
        source_id: str,
        start_date: date,
        end_date: date,
        today: date | None = None,
    ) -> SourceSummary:
        """Build the series, streak stats and metadata for one source.

        Raises:
            InvalidRangeError: If ``start_date > end_date``.
            SourceUnavailableError: If the source is unknown, needs a link the
                user has not made, or its stored activity cannot be read.
        """
        if start_date > end_date:
            raise InvalidRangeError(
                f"start date {start_date.isoformat()} is after end date {end_date.isoformat()}"
            )
        config = self._configs.get(source_id)
        if config is None:
            raise SourceUnavailableError(source_id, "unknown source")

        try:
            link = self._reader.get_platform_link(user_id, source_id)
        except _STORAGE_ERRORS as exc:
            raise SourceUnavailableError(source_id, f"storage read failed: {exc}") from exc
        if config.requires_link and link is None:
            raise SourceUnavailableError(source_id, "not linked")

        try:
            records = self._reader.get_raw_activity(user_id, source_id, start_date, end_date)
        except _STORAGE_ERRORS as exc:
            raise SourceUnavailableError(source_id, f"storage read failed: {exc}") from exc

        series = build_series(
            records,
            start_date,
            end_date,
            level_config=config.levels,
            source_id=source_id,
        )
        return SourceSummary(
            source_id=source_id,
            series=series,
            stats=compute_streaks(series, today or end_date),
            metadata=SourceMetadata(
                display_name=config.display_name,
                username=link.username if link else None,
                last_sync=link.last_sync if link else None,
            ),
        )

    def dashboard_sources(self, user_id: str) -> list[str]:
        """Sources shown for a user: every link-free source plus linked ones.

        If the links cannot be read, every configured source is returned and
        :meth:`summarize_source` decides per source whether it is available.
        """
        try:
            links = self._reader.get_platform_links(user_id)
        except _STORAGE_ERRORS as exc:
            logger.warning("Cannot list links for user %s: %s", user_id, exc)
            return list(self._configs)
        linked = {link.source_id for link in links}
        return [
            source_id
            for source_id, config in self._configs.items()
            if not config.requires_link or source_id in linked
        ]

    def build_dashboard(
        self,
        user_id: str,
        *,
        days: int = 365,
        today: date | None = None,
        source_ids: list[str] | None = None,
    ) -> DashboardAggregate:
        """Summarize the user's sources over the last ``days`` days and merge.

        Args:
            user_id: Whose dashboard to build.
            days: Window length ending on ``today`` (inclusive).
            today: Reference day. Defaults to ``date.today()``.
            source_ids: Sources to include. Defaults to :meth:`dashboard_sources`.

        Raises:
            InvalidRangeError: If ``days < 1``.
        """
        if days < 1:
            raise InvalidRangeError(f"days must be at least 1, got {days}")
        if today is None:
            today = date.today()
        start_date = today - timedelta(days=days - 1)

        if source_ids is None:
            source_ids = self.dashboard_sources(user_id)

        results: dict[str, SummaryOrError] = {}
        for source_id in source_ids:
            try:
                results[source_id] = self.summarize_source(
                    user_id, source_id, start_date, today, today
                )
            except Exception as exc:
                # merge_sources turns the failure into an unavailable entry
                results[source_id] = exc

        aggregate = merge_sources(results, today)
        logger.debug(
            "Dashboard for %s: %d available, %d unavailable",
            user_id,
            len(aggregate.totals.available_sources),
            len(aggregate.totals.unavailable_sources),
        )
        return aggregate
