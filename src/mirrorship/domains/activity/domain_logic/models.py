"""Activity models: raw provider records and the derived heatmap views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterator, Literal


class ActivityKind(str, Enum):
    """What a single unit of activity represents."""

    COMMIT = "commit"
    SUBMISSION = "submission"
    UPLOAD = "upload"
    ENTRY = "entry"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Raw input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawActivityRecord:
    """Activity count for one source on one calendar day.

    ``date`` may be given as a datetime; the time-of-day is dropped. Timezone
    conversion is the producer's job, so the datetime is assumed to already be
    in the reporting timezone.
    """

    date: date
    source_id: str
    count: int
    kind: ActivityKind = ActivityKind.OTHER

    def __post_init__(self) -> None:
        if isinstance(self.date, datetime):
            object.__setattr__(self, "date", self.date.date())
        if not isinstance(self.kind, ActivityKind):
            object.__setattr__(self, "kind", ActivityKind(self.kind))
        if isinstance(self.count, bool) or not isinstance(self.count, int):
            raise ValueError(f"count must be an integer, got {self.count!r}")
        if self.count < 0:
            raise ValueError(f"count must be non-negative, got {self.count}")


# ---------------------------------------------------------------------------
# Derived views (recomputed per request, never stored)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DailyActivity:
    """One heatmap cell."""

    date: date
    count: int
    level: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "count": self.count, "level": self.level}


@dataclass(frozen=True)
class ActivitySeries:
    """Gap-free, date-ordered daily activity for one source.

    An empty series (no days, no bounds) is what unavailable sources carry.
    """

    source_id: str
    days: tuple[DailyActivity, ...] = ()

    @property
    def start(self) -> date | None:
        return self.days[0].date if self.days else None

    @property
    def end(self) -> date | None:
        return self.days[-1].date if self.days else None

    @property
    def total(self) -> int:
        return sum(d.count for d in self.days)

    @property
    def active_days(self) -> int:
        return sum(1 for d in self.days if d.count > 0)

    def count_on(self, day: date) -> int:
        """Return the count for ``day``, or 0 when it falls outside the series."""
        start = self.start
        if start is None:
            return 0
        offset = (day - start).days
        if 0 <= offset < len(self.days):
            return self.days[offset].count
        return 0

    def __len__(self) -> int:
        return len(self.days)

    def __iter__(self) -> Iterator[DailyActivity]:
        return iter(self.days)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "total": self.total,
            "days": [d.to_dict() for d in self.days],
        }


@dataclass(frozen=True)
class StreakStats:
    """Streak badges for one series."""

    current_streak: int = 0
    best_streak: int = 0
    this_week: int = 0
    total_active: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "this_week": self.this_week,
            "total_active": self.total_active,
        }


@dataclass(frozen=True)
class SourceMetadata:
    """Who the source belongs to and when it was last synced."""

    display_name: str = ""
    username: str | None = None
    last_sync: str | None = None  # ISO 8601


@dataclass(frozen=True)
class SourceSummary:
    """Series, stats and metadata for one connected platform."""

    source_id: str
    series: ActivitySeries
    stats: StreakStats
    metadata: SourceMetadata = field(default_factory=SourceMetadata)
    available: bool = True
    reason: str | None = None

    @classmethod
    def unavailable(
        cls,
        source_id: str,
        reason: str,
        metadata: SourceMetadata | None = None,
    ) -> SourceSummary:
        """Sentinel for a source that could not be read: empty series, zero stats."""
        return cls(
            source_id=source_id,
            series=ActivitySeries(source_id=source_id),
            stats=StreakStats(),
            metadata=metadata or SourceMetadata(),
            available=False,
            reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "source_id": self.source_id,
            "available": self.available,
            "display_name": self.metadata.display_name,
            "username": self.metadata.username,
            "last_sync": self.metadata.last_sync,
            "stats": self.stats.to_dict(),
            "total": self.series.total,
            "heatmap": [d.to_dict() for d in self.series],
        }
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class DashboardTotals:
    """Cross-source totals over the available sources."""

    today: int = 0
    this_week: int = 0
    this_month: int = 0
    available_sources: tuple[str, ...] = ()
    unavailable_sources: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": self.today,
            "this_week": self.this_week,
            "this_month": self.this_month,
            "available_sources": list(self.available_sources),
            "unavailable_sources": list(self.unavailable_sources),
        }


@dataclass(frozen=True)
class DashboardAggregate:
    """Per-source summaries for one user plus cross-cutting totals."""

    sources: dict[str, SourceSummary]
    totals: DashboardTotals
    as_of: date

    def to_dict(self) -> dict[str, Any]:
        return {
            "as_of": self.as_of.isoformat(),
            "totals": self.totals.to_dict(),
            "sources": {sid: s.to_dict() for sid, s in self.sources.items()},
        }


Urgency = Literal["critical", "high", "medium", "low", "success"]


@dataclass(frozen=True)
class Motivation:
    """Dashboard nudge selected from today's count and streak."""

    message: str
    description: str
    action: str
    urgency: Urgency

    def to_dict(self) -> dict[str, str]:
        return {
            "message": self.message,
            "description": self.description,
            "action": self.action,
            "urgency": self.urgency,
        }
