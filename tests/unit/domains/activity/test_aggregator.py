"""Tests for ActivityAggregator: stored activity -> summaries -> dashboard."""

from __future__ import annotations

import sqlite3
from datetime import date, timedelta

import pytest

from mirrorship.core.storage.models import PlatformLink
from mirrorship.domains.activity.domain_logic.aggregator import ActivityAggregator
from mirrorship.domains.activity.domain_logic.errors import (
    InvalidRangeError,
    SourceUnavailableError,
)
from mirrorship.domains.activity.domain_logic.models import ActivityKind, RawActivityRecord

TODAY = date(2024, 6, 12)  # a Wednesday
USER = "user-1"


def _records(source_id: str, counts: dict[date, int]) -> list[RawActivityRecord]:
    return [
        RawActivityRecord(date=day, source_id=source_id, count=count, kind=ActivityKind.COMMIT)
        for day, count in counts.items()
    ]


@pytest.fixture
def aggregator(activity_repository, source_configs):
    return ActivityAggregator(activity_repository, source_configs)


@pytest.fixture
def linked_github(activity_repository):
    activity_repository.upsert_platform_link(
        PlatformLink(user_id=USER, source_id="github", username="octocat")
    )
    activity_repository.replace_raw_activity(
        USER,
        "github",
        _records("github", {
            TODAY: 5,
            TODAY - timedelta(days=1): 2,
            TODAY - timedelta(days=3): 9,
        }),
    )


class _BrokenReader:
    """Reader whose activity table cannot be read."""

    def get_raw_activity(self, user_id, source_id, start_date, end_date):
        raise sqlite3.OperationalError("no such table: raw_activity")

    def get_platform_link(self, user_id, source_id):
        return PlatformLink(user_id=user_id, source_id=source_id, username="octocat")

    def get_platform_links(self, user_id):
        return [self.get_platform_link(user_id, "github")]


class _UnlistableReader:
    """Reader whose link listing fails while single-link reads still work."""

    def get_raw_activity(self, user_id, source_id, start_date, end_date):
        return []

    def get_platform_link(self, user_id, source_id):
        if source_id == "github":
            return PlatformLink(user_id=user_id, source_id=source_id, username="octocat")
        return None

    def get_platform_links(self, user_id):
        raise sqlite3.OperationalError("database is locked")


class TestSummarizeSource:
    def test_linked_source_summary(self, aggregator, linked_github):
        summary = aggregator.summarize_source(
            USER, "github", TODAY - timedelta(days=6), TODAY
        )

        assert summary.available is True
        assert len(summary.series) == 7
        assert summary.series.count_on(TODAY) == 5
        assert summary.series.days[-1].level == 2
        assert summary.stats.current_streak == 2
        assert summary.stats.total_active == 3
        assert summary.metadata.display_name == "GitHub"
        assert summary.metadata.username == "octocat"

    def test_unlinked_source_unavailable(self, aggregator):
        with pytest.raises(SourceUnavailableError) as exc_info:
            aggregator.summarize_source(USER, "leetcode", TODAY, TODAY)
        assert exc_info.value.reason == "not linked"

    def test_unknown_source_unavailable(self, aggregator):
        with pytest.raises(SourceUnavailableError):
            aggregator.summarize_source(USER, "strava", TODAY, TODAY)

    def test_link_free_source_needs_no_link(self, aggregator, activity_repository):
        activity_repository.add_activity(USER, "diary", TODAY, 1)
        summary = aggregator.summarize_source(USER, "diary", TODAY, TODAY)
        assert summary.available is True
        assert summary.metadata.username is None
        assert summary.stats.current_streak == 1

    def test_inverted_range(self, aggregator):
        with pytest.raises(InvalidRangeError):
            aggregator.summarize_source(USER, "diary", TODAY, TODAY - timedelta(days=1))

    def test_storage_failure_unavailable(self, source_configs):
        aggregator = ActivityAggregator(_BrokenReader(), source_configs)
        with pytest.raises(SourceUnavailableError, match="storage read failed"):
            aggregator.summarize_source(USER, "github", TODAY, TODAY)

    def test_stats_anchor_on_today_within_range(self, aggregator, linked_github):
        summary = aggregator.summarize_source(
            USER,
            "github",
            TODAY - timedelta(days=6),
            TODAY + timedelta(days=3),
            today=TODAY - timedelta(days=1),
        )
        assert summary.stats.current_streak == 1


class TestDashboard:
    def test_sources_shown(self, aggregator, linked_github):
        assert aggregator.dashboard_sources(USER) == ["github", "diary"]

    def test_dashboard_totals(self, aggregator, activity_repository, linked_github):
        activity_repository.add_activity(USER, "diary", TODAY, 2)
        dashboard = aggregator.build_dashboard(USER, days=30, today=TODAY)

        assert list(dashboard.sources) == ["github", "diary"]
        assert dashboard.totals.today == 7
        # week began Sunday 2024-06-09
        assert dashboard.totals.this_week == 5 + 2 + 9 + 2
        assert dashboard.as_of == TODAY
        assert len(dashboard.sources["github"].series) == 30

    def test_explicit_sources_partial_failure(self, aggregator, linked_github):
        dashboard = aggregator.build_dashboard(
            USER, days=7, today=TODAY, source_ids=["github", "leetcode"]
        )

        assert dashboard.sources["github"].available is True
        assert dashboard.sources["leetcode"].available is False
        assert dashboard.sources["leetcode"].reason == "not linked"
        assert dashboard.totals.unavailable_sources == ("leetcode",)
        assert dashboard.totals.today == 5

    def test_storage_failure_does_not_sink_dashboard(self, source_configs):
        aggregator = ActivityAggregator(_BrokenReader(), source_configs)
        dashboard = aggregator.build_dashboard(USER, days=7, today=TODAY)
        assert dashboard.sources["github"].available is False
        assert dashboard.sources["diary"].available is False

    def test_link_listing_failure_does_not_sink_dashboard(self, source_configs):
        aggregator = ActivityAggregator(_UnlistableReader(), source_configs)

        assert aggregator.dashboard_sources(USER) == ["github", "leetcode", "youtube", "diary"]
        dashboard = aggregator.build_dashboard(USER, days=7, today=TODAY)

        assert dashboard.sources["github"].available is True
        assert dashboard.sources["diary"].available is True
        assert dashboard.sources["leetcode"].available is False
        assert dashboard.sources["youtube"].reason == "not linked"

    def test_days_must_be_positive(self, aggregator):
        with pytest.raises(InvalidRangeError):
            aggregator.build_dashboard(USER, days=0, today=TODAY)

    def test_single_day_window(self, aggregator, linked_github):
        dashboard = aggregator.build_dashboard(USER, days=1, today=TODAY)
        assert len(dashboard.sources["github"].series) == 1
