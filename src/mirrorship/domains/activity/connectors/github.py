"""GitHub provider: contribution calendar via the GraphQL API."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

import httpx

from mirrorship.domains.activity.connectors.base import (
    HttpActivityProvider,
    graphql_error_message,
)
from mirrorship.domains.activity.connectors.normalize import collapse_daily
from mirrorship.domains.activity.domain_logic.errors import (
    ProviderPayloadError,
    SourceUnavailableError,
)
from mirrorship.domains.activity.domain_logic.models import ActivityKind, RawActivityRecord

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://api.github.com/graphql"

# contributionsCollection rejects spans longer than one year
MAX_WINDOW_DAYS = 365

CONTRIBUTIONS_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            date
            contributionCount
          }
        }
      }
    }
  }
}
"""


def parse_contribution_calendar(
    payload: Any,
    source_id: str = "github",
) -> list[RawActivityRecord]:
    """Extract per-day contribution counts from a GraphQL response.

    Calendar dates are already local to the GitHub account, so they are
    used as-is. Zero-count days are kept; they clear stale counts on
    re-sync.

    Raises:
        ProviderPayloadError: If the payload does not have the calendar shape.
    """
    try:
        weeks = payload["data"]["user"]["contributionsCollection"][
            "contributionCalendar"
        ]["weeks"]
    except (KeyError, TypeError) as exc:
        raise ProviderPayloadError(source_id, "missing contributionCalendar.weeks") from exc
    if not isinstance(weeks, list):
        raise ProviderPayloadError(source_id, "contributionCalendar.weeks is not a list")

    pairs: list[tuple[date, int]] = []
    for week in weeks:
        days = week.get("contributionDays") if isinstance(week, dict) else None
        if not isinstance(days, list):
            raise ProviderPayloadError(source_id, "week without contributionDays list")
        for day in days:
            try:
                when = date.fromisoformat(day["date"])
                count = day["contributionCount"]
            except (KeyError, TypeError, ValueError) as exc:
                raise ProviderPayloadError(source_id, f"bad contribution day: {day!r}") from exc
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise ProviderPayloadError(source_id, f"bad contributionCount: {count!r}")
            pairs.append((when, count))

    return collapse_daily(pairs, source_id, ActivityKind.COMMIT)


def year_windows(start_date: date, end_date: date) -> list[tuple[date, date]]:
    """Split an inclusive range into consecutive windows of at most a year."""
    windows = []
    cursor = start_date
    while cursor <= end_date:
        window_end = min(end_date, cursor + timedelta(days=MAX_WINDOW_DAYS - 1))
        windows.append((cursor, window_end))
        cursor = window_end + timedelta(days=1)
    return windows


class GitHubProvider(HttpActivityProvider):
    """Fetches a user's contribution calendar.

    The GraphQL API always needs a token: the link's own credential wins,
    falling back to the server-wide ``default_token``.
    """

    source_id = "github"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        default_token: str = "",
        timeout_seconds: float = 15.0,
        timezone_name: str = "UTC",
    ) -> None:
        super().__init__(client, timeout_seconds=timeout_seconds, timezone_name=timezone_name)
        self._default_token = default_token

    async def fetch_activity(
        self,
        username: str,
        credential: str | None,
        start_date: date,
        end_date: date,
    ) -> list[RawActivityRecord]:
        token = credential or self._default_token
        if not token:
            raise SourceUnavailableError(self.source_id, "no GitHub access token configured")

        records: list[RawActivityRecord] = []
        for window_start, window_end in year_windows(start_date, end_date):
            payload = await self._request_json(
                "POST",
                GRAPHQL_URL,
                headers={"Authorization": f"bearer {token}"},
                json={
                    "query": CONTRIBUTIONS_QUERY,
                    "variables": {
                        "login": username,
                        "from": f"{window_start.isoformat()}T00:00:00Z",
                        "to": f"{window_end.isoformat()}T23:59:59Z",
                    },
                },
            )
            if isinstance(payload, dict) and payload.get("errors"):
                message = graphql_error_message(payload["errors"])
                raise SourceUnavailableError(self.source_id, message)
            data = (payload.get("data") if isinstance(payload, dict) else None) or {}
            if data.get("user") is None:
                raise SourceUnavailableError(self.source_id, f"user {username!r} not found")
            records.extend(parse_contribution_calendar(payload, self.source_id))

        records = collapse_daily(
            ((r.date, r.count) for r in records),
            self.source_id,
            ActivityKind.COMMIT,
            start_date,
            end_date,
        )
        logger.info(
            "Fetched %d GitHub contribution days for %s", len(records), username
        )
        return records
