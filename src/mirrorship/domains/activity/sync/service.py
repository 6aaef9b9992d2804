"""Sync service: pulls provider activity into the store.

A sync for one (user, source) fetches the platform's per-day counts for a
date range and replaces everything stored for that window, so days the
platform no longer reports are cleared. Sources are independent: a
user's sources sync concurrently and one failure is reported without
stopping the others. Batch sync walks users one at a time with a pause
between them to stay under provider rate limits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Mapping

from mirrorship.core.storage.encryption import EncryptionError
from mirrorship.core.storage.repository import RepositoryError
from mirrorship.domains.activity.connectors import ActivityProvider
from mirrorship.domains.activity.domain_logic.bucketer import today_in
from mirrorship.domains.activity.domain_logic.errors import (
    InvalidRangeError,
    ProviderPayloadError,
    SourceUnavailableError,
)

if TYPE_CHECKING:
    from mirrorship.core.audit.logger import AuditLogger
    from mirrorship.core.storage.repository import ActivityRepository

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of syncing one source for one user."""

    user_id: str
    source_id: str
    start_date: date
    end_date: date
    records: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "records": self.records,
            "date_range": {"from": self.start_date.isoformat(), "to": self.end_date.isoformat()},
            "duration_ms": round(self.duration_ms, 1),
        }


@dataclass
class UserSyncReport:
    """Per-source results and errors for one user."""

    user_id: str
    results: dict[str, SyncResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "results": {sid: r.to_dict() for sid, r in self.results.items()},
            "errors": [f"{sid}: {msg}" for sid, msg in self.errors.items()],
        }


@dataclass
class BatchSyncReport:
    """Summary of a sync over every linked user."""

    users_processed: int = 0
    users_failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "users_processed": self.users_processed,
            "users_failed": self.users_failed,
            "errors": list(self.errors),
        }


class SyncService:
    """Fetches activity from providers and writes it to the repository.

    Usage::

        service = SyncService(repository, {"github": GitHubProvider(default_token=...)})
        result = await service.sync_source("user-1", "github")
    """

    def __init__(
        self,
        repository: ActivityRepository,
        providers: Mapping[str, ActivityProvider],
        *,
        audit_logger: AuditLogger | None = None,
        default_days: int = 365,
        batch_delay_seconds: float = 1.0,
        timezone_name: str = "UTC",
    ) -> None:
        self._repo = repository
        self._providers = dict(providers)
        self._audit = audit_logger
        self._default_days = default_days
        self._batch_delay = batch_delay_seconds
        self._timezone_name = timezone_name

    @property
    def provider_ids(self) -> list[str]:
        return list(self._providers)

    def default_range(self, today: date | None = None) -> tuple[date, date]:
        """The last ``default_days`` days ending today in the reporting timezone."""
        end = today or today_in(self._timezone_name)
        return end - timedelta(days=self._default_days - 1), end

    async def sync_source(
        self,
        user_id: str,
        source_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> SyncResult:
        """Fetch one linked source and replace its stored days for the range.

        Raises:
            InvalidRangeError: If the range is inverted.
            SourceUnavailableError: If the source has no provider, the user
                has not linked it, its stored credential cannot be
                decrypted, or the provider fails.
        """
        default_start, default_end = self.default_range()
        start_date = start_date or default_start
        end_date = end_date or default_end
        if start_date > end_date:
            raise InvalidRangeError(
                f"start date {start_date.isoformat()} is after end date {end_date.isoformat()}"
            )

        provider = self._providers.get(source_id)
        if provider is None:
            raise SourceUnavailableError(source_id, "no provider for this source")
        try:
            link = self._repo.get_platform_link(user_id, source_id, include_credential=True)
        except (RepositoryError, EncryptionError) as exc:
            logger.warning("Cannot read %s credential for user %s: %s", source_id, user_id, exc)
            self._audit_failure(user_id, source_id, None, exc)
            raise SourceUnavailableError(source_id, "stored credential unreadable") from exc
        if link is None:
            raise SourceUnavailableError(source_id, "not linked")

        started = time.monotonic()
        try:
            records = await provider.fetch_activity(
                link.username, link.credential, start_date, end_date
            )
        except ProviderPayloadError as exc:
            self._audit_failure(user_id, source_id, started, exc)
            raise SourceUnavailableError(source_id, f"unexpected response: {exc.reason}") from exc
        except SourceUnavailableError as exc:
            self._audit_failure(user_id, source_id, started, exc)
            raise

        in_range = [r for r in records if start_date <= r.date <= end_date]
        written = self._repo.replace_raw_activity_range(
            user_id, source_id, start_date, end_date, in_range
        )
        self._repo.mark_synced(user_id, source_id)
        elapsed_ms = (time.monotonic() - started) * 1000

        if self._audit is not None:
            self._audit.log_sync(user_id, source_id, records=written, duration_ms=elapsed_ms)
        logger.info(
            "Synced %s for user %s: %d day(s) in %.0f ms", source_id, user_id, written, elapsed_ms
        )
        return SyncResult(
            user_id=user_id,
            source_id=source_id,
            start_date=start_date,
            end_date=end_date,
            records=written,
            duration_ms=elapsed_ms,
        )

    async def sync_user(
        self,
        user_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> UserSyncReport:
        """Sync every enabled link the user has, concurrently."""
        if start_date and end_date and start_date > end_date:
            raise InvalidRangeError(
                f"start date {start_date.isoformat()} is after end date {end_date.isoformat()}"
            )
        links = [
            link
            for link in self._repo.get_platform_links(user_id, enabled_only=True)
            if link.source_id in self._providers
        ]
        outcomes = await asyncio.gather(
            *(self.sync_source(user_id, link.source_id, start_date, end_date) for link in links),
            return_exceptions=True,
        )

        report = UserSyncReport(user_id=user_id)
        for link, outcome in zip(links, outcomes):
            if isinstance(outcome, SyncResult):
                report.results[link.source_id] = outcome
            elif isinstance(outcome, SourceUnavailableError):
                logger.warning(
                    "Sync of %s failed for user %s: %s", link.source_id, user_id, outcome.reason
                )
                report.errors[link.source_id] = outcome.reason
            elif isinstance(outcome, Exception):
                logger.error(
                    "Unexpected error syncing %s for user %s",
                    link.source_id,
                    user_id,
                    exc_info=outcome,
                )
                self._audit_failure(user_id, link.source_id, None, outcome)
                report.errors[link.source_id] = f"internal error ({type(outcome).__name__})"
            else:
                raise outcome
        return report

    async def sync_all_users(self) -> BatchSyncReport:
        """Sync every user with a sync-enabled link, one user at a time."""
        batch = BatchSyncReport()
        user_ids = self._repo.get_linked_user_ids()
        for index, user_id in enumerate(user_ids):
            if index and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)
            report = await self.sync_user(user_id)
            batch.users_processed += 1
            if not report.ok:
                batch.users_failed += 1
                batch.errors.extend(f"{user_id}: {err}" for err in report.to_dict()["errors"])

        logger.info(
            "Batch sync finished: %d users, %d with errors",
            batch.users_processed,
            batch.users_failed,
        )
        return batch

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()

    def _audit_failure(
        self,
        user_id: str,
        source_id: str,
        started: float | None,
        exc: BaseException,
    ) -> None:
        if self._audit is None:
            return
        self._audit.log_sync(
            user_id,
            source_id,
            duration_ms=(time.monotonic() - started) * 1000 if started is not None else None,
            status="failure",
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
