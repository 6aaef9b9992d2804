"""Shared HTTP plumbing for platform providers (httpx)."""

from __future__ import annotations

import logging
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from mirrorship.domains.activity.domain_logic.errors import (
    ProviderPayloadError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "Mirrorship-App"


class HttpActivityProvider:
    """Base class for providers that talk JSON over HTTP.

    An ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise the provider creates its own on first
    use and closes it in :meth:`aclose`.

    Transport failures and error statuses become ``SourceUnavailableError``;
    a body that is not JSON becomes ``ProviderPayloadError``.
    """

    source_id = ""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_seconds: float = 15.0,
        timezone_name: str = "UTC",
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout_seconds
        self._tz = ZoneInfo(timezone_name)

    async def __aenter__(self) -> HttpActivityProvider:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and decode its JSON body."""
        client = self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s request to %s failed: %s", self.source_id, url, exc)
            raise SourceUnavailableError(self.source_id, f"request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise SourceUnavailableError(
                self.source_id, f"credentials rejected (HTTP {response.status_code})"
            )
        if response.status_code == 404:
            raise SourceUnavailableError(self.source_id, "account not found (HTTP 404)")
        if response.status_code >= 400:
            raise SourceUnavailableError(
                self.source_id, f"provider error (HTTP {response.status_code})"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderPayloadError(self.source_id, "response body is not JSON") from exc


def graphql_error_message(errors: Any) -> str:
    """First message from a GraphQL ``errors`` array."""
    first = errors[0] if isinstance(errors, list) and errors else errors
    if isinstance(first, dict) and first.get("message"):
        return str(first["message"])
    return "GraphQL error"
