"""YouTube provider: channel uploads via the Data API v3.

Each upload counts as one unit of activity on the day it was published,
taken in the reporting timezone.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from typing import Any

import httpx

from mirrorship.domains.activity.connectors.base import HttpActivityProvider
from mirrorship.domains.activity.connectors.normalize import (
    collapse_daily,
    local_day,
    parse_timestamp,
)
from mirrorship.domains.activity.domain_logic.errors import (
    ProviderPayloadError,
    SourceUnavailableError,
)
from mirrorship.domains.activity.domain_logic.models import ActivityKind, RawActivityRecord

logger = logging.getLogger(__name__)

API_BASE_URL = "https://www.googleapis.com/youtube/v3"
PAGE_SIZE = 50
MAX_PAGES = 40


def parse_uploads_playlist_id(payload: Any, source_id: str = "youtube") -> str | None:
    """Uploads playlist ID from a ``channels.list`` response, or None if no channel matched."""
    if not isinstance(payload, dict):
        raise ProviderPayloadError(source_id, "channels response is not an object")
    items = payload.get("items") or []
    if not items:
        return None
    try:
        return str(items[0]["contentDetails"]["relatedPlaylists"]["uploads"])
    except (KeyError, TypeError, IndexError) as exc:
        raise ProviderPayloadError(source_id, "channel without uploads playlist") from exc


def parse_playlist_uploads(
    payload: Any,
    source_id: str = "youtube",
) -> tuple[list[datetime], str | None]:
    """Publish times and next page token from a ``playlistItems.list`` response.

    ``contentDetails.videoPublishedAt`` is preferred; ``snippet.publishedAt``
    (when the video joined the playlist) is the fallback.

    Raises:
        ProviderPayloadError: If an item lacks a parseable publish time.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("items", []), list):
        raise ProviderPayloadError(source_id, "playlistItems response has no items list")

    published: list[datetime] = []
    for item in payload.get("items", []):
        if not isinstance(item, dict):
            raise ProviderPayloadError(source_id, f"playlist item is not an object: {item!r}")
        details = item.get("contentDetails") or {}
        snippet = item.get("snippet") or {}
        raw = details.get("videoPublishedAt") or snippet.get("publishedAt")
        if not isinstance(raw, str):
            raise ProviderPayloadError(source_id, f"playlist item without publish time: {item!r}")
        try:
            published.append(parse_timestamp(raw))
        except ValueError as exc:
            raise ProviderPayloadError(source_id, f"bad publish time {raw!r}") from exc

    next_token = payload.get("nextPageToken")
    return published, next_token if isinstance(next_token, str) and next_token else None


def uploads_to_records(
    published: list[datetime],
    tz: tzinfo,
    start_date: date,
    end_date: date,
    source_id: str = "youtube",
) -> list[RawActivityRecord]:
    """One record per local day, counting uploads inside the range."""
    return collapse_daily(
        ((local_day(moment, tz), 1) for moment in published),
        source_id,
        ActivityKind.UPLOAD,
        start_date,
        end_date,
    )


class YouTubeProvider(HttpActivityProvider):
    """Counts a channel's uploads per day.

    ``username`` is the channel handle, with or without the leading ``@``.
    The API key comes from the link credential or the server-wide
    ``default_api_key``.
    """

    source_id = "youtube"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        default_api_key: str = "",
        timeout_seconds: float = 15.0,
        timezone_name: str = "UTC",
    ) -> None:
        super().__init__(client, timeout_seconds=timeout_seconds, timezone_name=timezone_name)
        self._default_api_key = default_api_key

    async def fetch_activity(
        self,
        username: str,
        credential: str | None,
        start_date: date,
        end_date: date,
    ) -> list[RawActivityRecord]:
        api_key = credential or self._default_api_key
        if not api_key:
            raise SourceUnavailableError(self.source_id, "no YouTube API key configured")

        handle = username[1:] if username.startswith("@") else username
        channels = await self._request_json(
            "GET",
            f"{API_BASE_URL}/channels",
            params={"part": "contentDetails", "forHandle": handle, "key": api_key},
        )
        playlist_id = parse_uploads_playlist_id(channels, self.source_id)
        if playlist_id is None:
            raise SourceUnavailableError(self.source_id, f"channel @{handle} not found")

        published: list[datetime] = []
        page_token: str | None = None
        for _ in range(MAX_PAGES):
            params = {
                "part": "snippet,contentDetails",
                "playlistId": playlist_id,
                "maxResults": PAGE_SIZE,
                "key": api_key,
            }
            if page_token:
                params["pageToken"] = page_token
            page = await self._request_json("GET", f"{API_BASE_URL}/playlistItems", params=params)
            times, page_token = parse_playlist_uploads(page, self.source_id)
            published.extend(times)
            # Uploads are listed newest first
            if not page_token or (times and local_day(min(times), self._tz) < start_date):
                break
        else:
            logger.warning("Stopped paging @%s uploads after %d pages", handle, MAX_PAGES)

        records = uploads_to_records(published, self._tz, start_date, end_date, self.source_id)
        logger.info("Fetched %d YouTube upload days for @%s", len(records), handle)
        return records
