"""Tests for the GitHub contribution calendar provider."""

from __future__ import annotations

import asyncio
import json
from datetime import date

import httpx
import pytest

from mirrorship.domains.activity.connectors import ActivityProvider
from mirrorship.domains.activity.connectors.github import (
    GRAPHQL_URL,
    GitHubProvider,
    parse_contribution_calendar,
    year_windows,
)
from mirrorship.domains.activity.domain_logic.errors import (
    ProviderPayloadError,
    SourceUnavailableError,
)
from mirrorship.domains.activity.domain_logic.models import ActivityKind


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _calendar(days: list[tuple[str, int]]) -> dict:
    return {
        "data": {
            "user": {
                "contributionsCollection": {
                    "contributionCalendar": {
                        "totalContributions": sum(c for _, c in days),
                        "weeks": [
                            {
                                "contributionDays": [
                                    {"date": d, "contributionCount": c} for d, c in days
                                ]
                            }
                        ],
                    }
                }
            }
        }
    }


def _provider(handler, **kwargs) -> GitHubProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubProvider(client, **kwargs)


class TestParseContributionCalendar:
    def test_days_become_commit_records(self):
        payload = _calendar([("2024-01-01", 5), ("2024-01-02", 0), ("2024-01-03", 2)])
        records = parse_contribution_calendar(payload)

        assert [(r.date, r.count) for r in records] == [
            (date(2024, 1, 1), 5),
            (date(2024, 1, 2), 0),
            (date(2024, 1, 3), 2),
        ]
        assert all(r.kind is ActivityKind.COMMIT for r in records)
        assert all(r.source_id == "github" for r in records)

    def test_missing_calendar(self):
        with pytest.raises(ProviderPayloadError):
            parse_contribution_calendar({"data": {"user": {}}})

    def test_null_data(self):
        with pytest.raises(ProviderPayloadError):
            parse_contribution_calendar({"data": None})

    def test_bad_date(self):
        with pytest.raises(ProviderPayloadError):
            parse_contribution_calendar(_calendar([("01/02/2024", 1)]))

    def test_negative_count(self):
        with pytest.raises(ProviderPayloadError):
            parse_contribution_calendar(_calendar([("2024-01-02", -1)]))


class TestYearWindows:
    def test_short_range_single_window(self):
        assert year_windows(date(2024, 1, 1), date(2024, 3, 1)) == [
            (date(2024, 1, 1), date(2024, 3, 1))
        ]

    def test_long_range_split(self):
        windows = year_windows(date(2023, 1, 1), date(2024, 6, 30))
        assert len(windows) == 2
        assert windows[0] == (date(2023, 1, 1), date(2023, 12, 31))
        assert windows[1] == (date(2024, 1, 1), date(2024, 6, 30))


class TestGitHubProvider:
    def test_satisfies_protocol(self):
        assert isinstance(GitHubProvider(default_token="t"), ActivityProvider)

    def test_fetch_sends_token_and_clips_range(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=_calendar([("2023-12-31", 9), ("2024-01-01", 3), ("2024-01-02", 1)]),
            )

        provider = _provider(handler)
        records = _run(
            provider.fetch_activity("octocat", "ghp_secret", date(2024, 1, 1), date(2024, 1, 2))
        )

        assert seen["url"] == GRAPHQL_URL
        assert seen["auth"] == "bearer ghp_secret"
        assert seen["body"]["variables"]["login"] == "octocat"
        assert seen["body"]["variables"]["from"] == "2024-01-01T00:00:00Z"
        assert [(r.date, r.count) for r in records] == [
            (date(2024, 1, 1), 3),
            (date(2024, 1, 2), 1),
        ]

    def test_default_token_used_without_credential(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=_calendar([]))

        provider = _provider(handler, default_token="server-token")
        _run(provider.fetch_activity("octocat", None, date(2024, 1, 1), date(2024, 1, 1)))
        assert seen["auth"] == "bearer server-token"

    def test_no_token_unavailable(self):
        provider = _provider(lambda request: httpx.Response(200, json={}))
        with pytest.raises(SourceUnavailableError, match="token"):
            _run(provider.fetch_activity("octocat", None, date(2024, 1, 1), date(2024, 1, 1)))

    def test_rejected_token(self):
        provider = _provider(lambda request: httpx.Response(401, json={"message": "Bad"}))
        with pytest.raises(SourceUnavailableError) as exc_info:
            _run(provider.fetch_activity("octocat", "bad", date(2024, 1, 1), date(2024, 1, 1)))
        assert exc_info.value.reason == "credentials rejected (HTTP 401)"

    def test_unknown_user(self):
        provider = _provider(
            lambda request: httpx.Response(200, json={"data": {"user": None}})
        )
        with pytest.raises(SourceUnavailableError, match="not found"):
            _run(provider.fetch_activity("ghost", "t", date(2024, 1, 1), date(2024, 1, 1)))

    def test_graphql_errors(self):
        provider = _provider(
            lambda request: httpx.Response(
                200, json={"errors": [{"message": "rate limited"}], "data": None}
            )
        )
        with pytest.raises(SourceUnavailableError, match="rate limited"):
            _run(provider.fetch_activity("octocat", "t", date(2024, 1, 1), date(2024, 1, 1)))

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = _provider(handler)
        with pytest.raises(SourceUnavailableError, match="request failed"):
            _run(provider.fetch_activity("octocat", "t", date(2024, 1, 1), date(2024, 1, 1)))

    def test_non_json_body(self):
        provider = _provider(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(ProviderPayloadError):
            _run(provider.fetch_activity("octocat", "t", date(2024, 1, 1), date(2024, 1, 1)))

    def test_one_request_per_year_window(self):
        calls = []

        def handler(request):
            calls.append(json.loads(request.content)["variables"]["from"])
            return httpx.Response(200, json=_calendar([]))

        provider = _provider(handler)
        _run(provider.fetch_activity("octocat", "t", date(2023, 1, 1), date(2024, 6, 30)))
        assert calls == ["2023-01-01T00:00:00Z", "2024-01-01T00:00:00Z"]

    def test_injected_client_not_closed(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        )
        provider = GitHubProvider(client, default_token="t")
        _run(provider.aclose())
        assert client.is_closed is False
