"""LeetCode provider: submission calendar via the public GraphQL endpoint."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
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

GRAPHQL_URL = "https://leetcode.com/graphql/"

CALENDAR_QUERY = """
query userProfileCalendar($username: String!, $year: Int) {
  matchedUser(username: $username) {
    username
    userCalendar(year: $year) {
      submissionCalendar
    }
  }
}
"""


def parse_submission_calendar(
    payload: Any,
    source_id: str = "leetcode",
) -> list[RawActivityRecord]:
    """Extract per-day submission counts from a ``userCalendar`` response.

    ``submissionCalendar`` is a JSON-encoded object mapping the unix
    timestamp of a UTC midnight to that day's submission count. The keys
    are day buckets, not event times, so they are read in UTC.

    Raises:
        ProviderPayloadError: If the payload or the embedded calendar is malformed.
    """
    try:
        raw_calendar = payload["data"]["matchedUser"]["userCalendar"]["submissionCalendar"]
    except (KeyError, TypeError) as exc:
        raise ProviderPayloadError(source_id, "missing userCalendar.submissionCalendar") from exc

    if isinstance(raw_calendar, str):
        try:
            calendar = json.loads(raw_calendar or "{}")
        except ValueError as exc:
            raise ProviderPayloadError(source_id, "submissionCalendar is not valid JSON") from exc
    else:
        calendar = raw_calendar
    if not isinstance(calendar, dict):
        raise ProviderPayloadError(source_id, "submissionCalendar is not an object")

    pairs: list[tuple[date, int]] = []
    for timestamp, count in calendar.items():
        try:
            day = datetime.fromtimestamp(int(timestamp), tz=timezone.utc).date()
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise ProviderPayloadError(source_id, f"bad calendar timestamp {timestamp!r}") from exc
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ProviderPayloadError(source_id, f"bad submission count {count!r}")
        pairs.append((day, count))

    return collapse_daily(pairs, source_id, ActivityKind.SUBMISSION)


class LeetCodeProvider(HttpActivityProvider):
    """Fetches a user's submission calendar, one request per calendar year.

    A session cookie is optional; when the link stores one it is sent as
    ``LEETCODE_SESSION`` so private profiles resolve.
    """

    source_id = "leetcode"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_seconds: float = 15.0,
        timezone_name: str = "UTC",
    ) -> None:
        super().__init__(client, timeout_seconds=timeout_seconds, timezone_name=timezone_name)

    async def fetch_activity(
        self,
        username: str,
        credential: str | None,
        start_date: date,
        end_date: date,
    ) -> list[RawActivityRecord]:
        headers = {"Referer": "https://leetcode.com/"}
        if credential:
            headers["Cookie"] = f"LEETCODE_SESSION={credential}"

        records: list[RawActivityRecord] = []
        for year in range(start_date.year, end_date.year + 1):
            payload = await self._request_json(
                "POST",
                GRAPHQL_URL,
                headers=headers,
                json={
                    "query": CALENDAR_QUERY,
                    "variables": {"username": username, "year": year},
                },
            )
            if isinstance(payload, dict) and payload.get("errors"):
                message = graphql_error_message(payload["errors"])
                raise SourceUnavailableError(self.source_id, message)
            data = (payload.get("data") if isinstance(payload, dict) else None) or {}
            if data.get("matchedUser") is None:
                raise SourceUnavailableError(self.source_id, f"user {username!r} not found")
            # each response covers one calendar year
            records.extend(
                r for r in parse_submission_calendar(payload, self.source_id) if r.date.year == year
            )

        records = collapse_daily(
            ((r.date, r.count) for r in records),
            self.source_id,
            ActivityKind.SUBMISSION,
            start_date,
            end_date,
        )
        logger.info("Fetched %d LeetCode submission days for %s", len(records), username)
        return records
