"""Activity repository: raw per-day activity and platform links.

The repository mediates between domain objects (RawActivityRecord,
PlatformLink) and the SQLite database, using FieldEncryptor for platform
credentials.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Iterable

from mirrorship.core.storage.database import ActivityDatabase
from mirrorship.core.storage.encryption import FieldEncryptor
from mirrorship.core.storage.models import PlatformLink
from mirrorship.domains.activity.domain_logic.models import ActivityKind, RawActivityRecord

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class ActivityRepository:
    """Store for raw daily activity and the platform links that feed it.

    Usage::

        db = ActivityDatabase(":memory:")
        db.initialize()
        repo = ActivityRepository(db, FieldEncryptor(key="..."))

        repo.replace_raw_activity("user-1", "github", records)
        repo.get_raw_activity("user-1", "github", date(2024, 1, 1), date(2024, 1, 31))
    """

    def __init__(
        self,
        database: ActivityDatabase,
        encryptor: FieldEncryptor | None = None,
    ) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @property
    def can_store_credentials(self) -> bool:
        return self._enc is not None

    # ------------------------------------------------------------------
    # Raw activity
    # ------------------------------------------------------------------

    def get_raw_activity(
        self,
        user_id: str,
        source_id: str,
        start_date: date,
        end_date: date,
    ) -> list[RawActivityRecord]:
        """Return stored records for one (user, source) within an inclusive range.

        Returns:
            Records ordered by date, oldest first.
        """
        rows = self._db.connection.execute(
            """SELECT activity_date, source_id, count, kind FROM raw_activity
               WHERE user_id = ? AND source_id = ?
                 AND activity_date >= ? AND activity_date <= ?
               ORDER BY activity_date ASC""",
            (user_id, source_id, start_date.isoformat(), end_date.isoformat()),
        ).fetchall()

        return [
            RawActivityRecord(
                date=date.fromisoformat(row["activity_date"]),
                source_id=row["source_id"],
                count=row["count"],
                kind=ActivityKind(row["kind"]),
            )
            for row in rows
        ]

    def replace_raw_activity(
        self,
        user_id: str,
        source_id: str,
        records: Iterable[RawActivityRecord],
    ) -> int:
        """Replace stored activity for exactly the dates present in ``records``.

        Records sharing a date are summed into one row. Dates not present in
        ``records`` are left untouched. Delete and insert run in one
        transaction.

        Returns:
            Number of day rows written.

        Raises:
            RepositoryError: If a record belongs to a different source.
        """
        daily, kinds = self._daily_totals(source_id, records)
        if not daily:
            return 0

        conn = self._db.connection
        dates = [d.isoformat() for d in sorted(daily)]
        try:
            for chunk_start in range(0, len(dates), 500):
                chunk = dates[chunk_start:chunk_start + 500]
                placeholders = ",".join("?" for _ in chunk)
                conn.execute(
                    f"""DELETE FROM raw_activity
                        WHERE user_id = ? AND source_id = ? AND activity_date IN ({placeholders})""",
                    [user_id, source_id, *chunk],
                )
            self._insert_days(user_id, source_id, daily, kinds)
            conn.commit()
        except Exception:
            conn.rollback()
            raise

        logger.info(
            "Replaced %d day(s) of %s activity for user %s", len(daily), source_id, user_id
        )
        return len(daily)

    def replace_raw_activity_range(
        self,
        user_id: str,
        source_id: str,
        start_date: date,
        end_date: date,
        records: Iterable[RawActivityRecord],
    ) -> int:
        """Replace everything stored for one source within ``[start_date, end_date]``.

        Every stored day in the window is deleted, including days absent
        from ``records``, so activity a platform no longer reports is
        cleared. Delete and insert run in one transaction.

        Returns:
            Number of day rows written.

        Raises:
            RepositoryError: If a record belongs to a different source or
                falls outside the window.
        """
        if start_date > end_date:
            raise RepositoryError(
                f"start date {start_date.isoformat()} is after end date {end_date.isoformat()}"
            )
        daily, kinds = self._daily_totals(source_id, records)
        outside = [d for d in daily if not start_date <= d <= end_date]
        if outside:
            raise RepositoryError(
                f"Record dated {min(outside).isoformat()} is outside the replaced window"
            )

        conn = self._db.connection
        try:
            cleared = conn.execute(
                """DELETE FROM raw_activity
                   WHERE user_id = ? AND source_id = ?
                     AND activity_date >= ? AND activity_date <= ?""",
                (user_id, source_id, start_date.isoformat(), end_date.isoformat()),
            ).rowcount
            self._insert_days(user_id, source_id, daily, kinds)
            conn.commit()
        except Exception:
            conn.rollback()
            raise

        logger.info(
            "Replaced %s activity for user %s from %s to %s: %d cleared, %d written",
            source_id,
            user_id,
            start_date,
            end_date,
            cleared,
            len(daily),
        )
        return len(daily)

    def add_activity(
        self,
        user_id: str,
        source_id: str,
        day: date,
        count: int,
        kind: ActivityKind = ActivityKind.ENTRY,
    ) -> int:
        """Add ``count`` to the stored count for one day.

        Returns:
            The day's new total.
        """
        if count < 0:
            raise RepositoryError(f"count must be non-negative, got {count}")

        conn = self._db.connection
        conn.execute(
            """INSERT INTO raw_activity
               (id, user_id, source_id, activity_date, count, kind, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, source_id, activity_date) DO UPDATE SET
                   count = raw_activity.count + excluded.count""",
            (
                self._new_id(),
                user_id,
                source_id,
                day.isoformat(),
                count,
                kind.value,
                self._now_iso(),
            ),
        )
        conn.commit()
        row = conn.execute(
            """SELECT count FROM raw_activity
               WHERE user_id = ? AND source_id = ? AND activity_date = ?""",
            (user_id, source_id, day.isoformat()),
        ).fetchone()
        return row[0]

    def count_activity_rows(self, user_id: str | None = None) -> int:
        """Return the number of stored day rows, optionally for one user."""
        if user_id:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM raw_activity WHERE user_id = ?", (user_id,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM raw_activity").fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Platform links
    # ------------------------------------------------------------------

    def upsert_platform_link(self, link: PlatformLink) -> None:
        """Insert or update a user's link to a platform.

        A link without a credential keeps any credential already stored.

        Raises:
            RepositoryError: If a credential is given but no encryption key
                is configured.
        """
        credential_enc = None
        if link.credential:
            if self._enc is None:
                raise RepositoryError(
                    "Cannot store platform credentials without ENCRYPTION_KEY"
                )
            credential_enc = self._enc.encrypt(link.credential)

        conn = self._db.connection
        conn.execute(
            """INSERT INTO platform_links
                   (id, user_id, source_id, username, credential_enc, last_sync, sync_enabled, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, source_id) DO UPDATE SET
                   username = excluded.username,
                   credential_enc = COALESCE(excluded.credential_enc, platform_links.credential_enc),
                   last_sync = COALESCE(excluded.last_sync, platform_links.last_sync),
                   sync_enabled = excluded.sync_enabled""",
            (
                link.id or self._new_id(),
                link.user_id,
                link.source_id,
                link.username,
                credential_enc,
                link.last_sync,
                int(link.sync_enabled),
                link.created_at or self._now_iso(),
            ),
        )
        conn.commit()
        logger.info("Linked %s account %r for user %s", link.source_id, link.username, link.user_id)

    def get_platform_link(
        self,
        user_id: str,
        source_id: str,
        *,
        include_credential: bool = False,
    ) -> PlatformLink | None:
        """Fetch one link, optionally decrypting its credential."""
        row = self._db.connection.execute(
            "SELECT * FROM platform_links WHERE user_id = ? AND source_id = ?",
            (user_id, source_id),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_link(row, include_credential=include_credential)

    def get_platform_links(
        self,
        user_id: str,
        *,
        enabled_only: bool = False,
    ) -> list[PlatformLink]:
        """List a user's links (credentials are not decrypted)."""
        query = "SELECT * FROM platform_links WHERE user_id = ?"
        if enabled_only:
            query += " AND sync_enabled = 1"
        query += " ORDER BY source_id"
        rows = self._db.connection.execute(query, (user_id,)).fetchall()
        return [self._row_to_link(row) for row in rows]

    def get_linked_user_ids(self) -> list[str]:
        """Users with at least one sync-enabled link."""
        rows = self._db.connection.execute(
            """SELECT DISTINCT user_id FROM platform_links
               WHERE sync_enabled = 1 ORDER BY user_id"""
        ).fetchall()
        return [row[0] for row in rows]

    def mark_synced(self, user_id: str, source_id: str, when: str | None = None) -> None:
        """Record a successful sync time on the link."""
        conn = self._db.connection
        conn.execute(
            "UPDATE platform_links SET last_sync = ? WHERE user_id = ? AND source_id = ?",
            (when or self._now_iso(), user_id, source_id),
        )
        conn.commit()

    def delete_platform_link(self, user_id: str, source_id: str) -> bool:
        """Remove a link. Stored activity for the source is kept.

        Returns:
            True if a link was deleted.
        """
        conn = self._db.connection
        cursor = conn.execute(
            "DELETE FROM platform_links WHERE user_id = ? AND source_id = ?",
            (user_id, source_id),
        )
        conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Deletion / data retention
    # ------------------------------------------------------------------

    def purge_before(self, before: date) -> int:
        """Delete activity rows dated strictly before ``before``.

        Returns:
            Number of rows deleted.
        """
        conn = self._db.connection
        cursor = conn.execute(
            "DELETE FROM raw_activity WHERE activity_date < ?", (before.isoformat(),)
        )
        conn.commit()
        logger.info("Purged %d activity rows older than %s", cursor.rowcount, before)
        return cursor.rowcount

    def purge_before_days(self, days: int) -> int:
        """Delete activity rows older than ``days`` days.

        Convenience wrapper around :meth:`purge_before`.
        """
        cutoff = datetime.now(timezone.utc).date() - timedelta(days=days)
        return self.purge_before(cutoff)

    def delete_user_data(self, user_id: str) -> int:
        """Delete all activity rows and platform links for one user.

        Returns:
            Number of activity rows deleted.
        """
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM raw_activity WHERE user_id = ?", (user_id,))
        deleted = cursor.rowcount
        conn.execute("DELETE FROM platform_links WHERE user_id = ?", (user_id,))
        conn.commit()
        logger.warning("Deleted all data for user %s: %d activity rows", user_id, deleted)
        return deleted

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _daily_totals(
        source_id: str, records: Iterable[RawActivityRecord]
    ) -> tuple[dict[date, int], dict[date, ActivityKind]]:
        daily: dict[date, int] = defaultdict(int)
        kinds: dict[date, ActivityKind] = {}
        for record in records:
            if record.source_id != source_id:
                raise RepositoryError(
                    f"Record for source {record.source_id!r} passed to {source_id!r} replace"
                )
            daily[record.date] += record.count
            kinds.setdefault(record.date, record.kind)
        return daily, kinds

    def _insert_days(
        self,
        user_id: str,
        source_id: str,
        daily: dict[date, int],
        kinds: dict[date, ActivityKind],
    ) -> None:
        # caller owns the transaction
        now = self._now_iso()
        self._db.connection.executemany(
            """INSERT INTO raw_activity
               (id, user_id, source_id, activity_date, count, kind, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            [
                (self._new_id(), user_id, source_id, day.isoformat(), daily[day], kinds[day].value, now)
                for day in sorted(daily)
            ],
        )

    def _row_to_link(self, row, *, include_credential: bool = False) -> PlatformLink:
        credential = None
        if include_credential and row["credential_enc"]:
            if self._enc is None:
                raise RepositoryError(
                    "Stored credential cannot be read without ENCRYPTION_KEY"
                )
            credential = self._enc.decrypt(row["credential_enc"])

        return PlatformLink(
            id=row["id"],
            user_id=row["user_id"],
            source_id=row["source_id"],
            username=row["username"],
            credential=credential,
            credential_stored=bool(row["credential_enc"]),
            last_sync=row["last_sync"],
            sync_enabled=bool(row["sync_enabled"]),
            created_at=row["created_at"],
        )
