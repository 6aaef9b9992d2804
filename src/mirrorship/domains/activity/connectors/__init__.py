"""Activity connectors: abstraction layer for external activity platforms."""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from mirrorship.domains.activity.domain_logic.models import RawActivityRecord


@runtime_checkable
class ActivityProvider(Protocol):
    """Fetches per-day activity for one platform account.

    The sync service calls these methods without knowing which platform
    answers. Implementations return one record per calendar day and raise
    ``SourceUnavailableError`` when the platform cannot be reached or
    rejects the account.
    """

    @property
    def source_id(self) -> str:
        """Source this provider feeds: 'github', 'leetcode', 'youtube'."""
        ...

    async def fetch_activity(
        self,
        username: str,
        credential: str | None,
        start_date: date,
        end_date: date,
    ) -> list[RawActivityRecord]:
        """Activity for ``username`` between two days, inclusive."""
        ...

    async def aclose(self) -> None:
        """Release any HTTP resources held by the provider."""
        ...
