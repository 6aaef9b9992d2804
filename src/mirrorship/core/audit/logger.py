"""Audit logger: records syncs, link changes and deletions.

Every provider sync, platform link change and data deletion is written to
the ``audit_log`` table so a user can see when their activity was fetched
and what was removed. Credentials never reach the audit trail.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from mirrorship.core.storage.database import ActivityDatabase

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'sync' | 'link' | 'unlink' | 'data_delete'
    tool_name: str = ""
    user_id: str | None = None
    source_id: str | None = None
    records: int | None = None
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    All writes are committed immediately. A failed write is logged and
    never interrupts the operation being audited.

    Usage::

        audit = AuditLogger(activity_db)
        audit.log_sync("user-1", "github", records=212, duration_ms=830.0)
    """

    def __init__(self, database: ActivityDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID (empty on write failure)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"))
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, user_id, source_id,
                    records, duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.user_id,
                    event.source_id,
                    event.records,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event, event lost")
            return ""

        return event_id

    def log_sync(
        self,
        user_id: str,
        source_id: str,
        *,
        records: int = 0,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        error_message: str | None = None,
    ) -> str:
        """Log one provider sync attempt for a (user, source) pair."""
        return self.log_event(AuditEvent(
            action="sync",
            tool_name="sync",
            user_id=user_id,
            source_id=source_id,
            records=records,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata={"error": error_message} if error_message else {},
        ))

    def log_link_change(self, user_id: str, source_id: str, *, linked: bool) -> str:
        """Log a platform being linked or unlinked."""
        return self.log_event(AuditEvent(
            action="link" if linked else "unlink",
            user_id=user_id,
            source_id=source_id,
        ))

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        user_id: str | None = None,
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a data deletion event."""
        return self.log_event(AuditEvent(
            action="data_delete",
            tool_name=tool_name,
            user_id=user_id,
            records=count,
            metadata=metadata or {},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | Sequence[str] | None = None,
        user_id: str | None = None,
        source_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events with optional filters.

        ``action`` may be a single action or a sequence of them.

        Returns:
            List of event dicts, newest first. ``metadata_json`` is decoded
            into ``metadata``.
        """
        conditions: list[str] = []
        params: list[Any] = []

        if isinstance(action, str):
            conditions.append("action = ?")
            params.append(action)
        elif action:
            conditions.append(f"action IN ({','.join('?' for _ in action)})")
            params.extend(action)
        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)
        if source_id:
            conditions.append("source_id = ?")
            params.append(source_id)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        events = []
        for row in rows:
            event = dict(row)
            raw = event.pop("metadata_json", None)
            event["metadata"] = json.loads(raw) if raw else {}
            events.append(event)
        return events

    def count_events(self, *, action: str | None = None) -> int:
        """Count audit events, optionally of one action type."""
        if action:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE action = ?", (action,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]
