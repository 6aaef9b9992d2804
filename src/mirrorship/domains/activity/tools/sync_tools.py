"""MCP tools for linking platforms and syncing their activity.

Linked credentials are encrypted at rest and never returned. Every link
change and sync attempt is audit-logged when an audit logger is configured.
"""

from __future__ import annotations

import hmac
import json
import logging
from datetime import date
from typing import TYPE_CHECKING, Mapping

from fastmcp import Context, FastMCP

from mirrorship.core.storage.models import PlatformLink
from mirrorship.core.storage.repository import RepositoryError
from mirrorship.domains.activity.domain_logic.errors import (
    InvalidRangeError,
    SourceUnavailableError,
)

if TYPE_CHECKING:
    from mirrorship.core.audit.logger import AuditLogger
    from mirrorship.core.storage.repository import ActivityRepository
    from mirrorship.domains.activity.domain_logic.source_config import SourceConfig
    from mirrorship.domains.activity.sync.service import SyncService

logger = logging.getLogger(__name__)

_HISTORY_ACTIONS = ("sync", "link", "unlink")


def register_sync_tools(
    mcp: FastMCP,
    repository: ActivityRepository,
    sync_service: SyncService,
    source_configs: Mapping[str, SourceConfig],
    *,
    audit_logger: AuditLogger | None = None,
    admin_api_key: str = "",
) -> None:
    """Register platform link and sync tools on the MCP server."""

    linkable = sorted(sid for sid, cfg in source_configs.items() if cfg.requires_link)

    @mcp.tool
    async def link_platform(
        ctx: Context,
        user_id: str,
        source_id: str,
        username: str,
        credential: str = "",
        sync_enabled: bool = True,
    ) -> str:
        """Connect a platform account so its activity can be synced.

        Args:
            user_id: Owner of the link.
            source_id: 'github', 'leetcode' or 'youtube'.
            username: GitHub login, LeetCode username or YouTube channel handle.
            credential: Optional token, session cookie or API key. Stored
                encrypted; omit to keep an existing one.
            sync_enabled: Whether batch and per-user syncs include this link.
        """
        if source_id not in linkable:
            return json.dumps({
                "status": "error",
                "message": f"Unknown platform {source_id!r}. Choose one of: {', '.join(linkable)}.",
            })
        if not username.strip():
            return json.dumps({"status": "error", "message": "username must not be empty."})

        link = PlatformLink(
            user_id=user_id,
            source_id=source_id,
            username=username.strip(),
            credential=credential or None,
            sync_enabled=sync_enabled,
        )
        try:
            repository.upsert_platform_link(link)
        except RepositoryError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        if audit_logger is not None:
            audit_logger.log_link_change(user_id, source_id, linked=True)

        stored = repository.get_platform_link(user_id, source_id)
        return json.dumps({"status": "linked", **stored.to_public_dict()})

    @mcp.tool
    async def unlink_platform(
        ctx: Context,
        user_id: str,
        source_id: str,
    ) -> str:
        """Disconnect a platform account. Already-synced activity is kept.

        Args:
            user_id: Owner of the link.
            source_id: Platform to disconnect.
        """
        removed = repository.delete_platform_link(user_id, source_id)
        if not removed:
            return json.dumps({
                "status": "not_found",
                "source_id": source_id,
                "message": "No link found for that platform.",
            })

        if audit_logger is not None:
            audit_logger.log_link_change(user_id, source_id, linked=False)
        return json.dumps({"status": "unlinked", "source_id": source_id})

    @mcp.tool
    async def list_platforms(
        ctx: Context,
        user_id: str,
    ) -> str:
        """Show which platforms a user has linked and when each last synced.

        Args:
            user_id: Whose links to list.
        """
        links = repository.get_platform_links(user_id)
        linked = {link.source_id for link in links}
        return json.dumps({
            "status": "ok",
            "user_id": user_id,
            "platforms": [link.to_public_dict() for link in links],
            "available_to_link": [sid for sid in linkable if sid not in linked],
        })

    @mcp.tool
    async def sync_platform(
        ctx: Context,
        user_id: str,
        source_id: str,
        start_date: str = "",
        end_date: str = "",
    ) -> str:
        """Fetch one linked platform's activity and store it.

        Args:
            user_id: Owner of the link.
            source_id: Platform to sync.
            start_date: First day, ISO 8601 (default: a year ago).
            end_date: Last day, ISO 8601 (default: today).
        """
        try:
            start = date.fromisoformat(start_date) if start_date else None
            end = date.fromisoformat(end_date) if end_date else None
        except ValueError as exc:
            return json.dumps({"status": "error", "message": f"Invalid date: {exc}"})

        try:
            result = await sync_service.sync_source(user_id, source_id, start, end)
        except InvalidRangeError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        except SourceUnavailableError as exc:
            return json.dumps({
                "status": "unavailable",
                "source_id": source_id,
                "reason": exc.reason,
            })

        return json.dumps({"status": "synced", **result.to_dict()})

    @mcp.tool
    async def sync_my_platforms(
        ctx: Context,
        user_id: str,
    ) -> str:
        """Sync every enabled platform a user has linked.

        Platforms sync independently; a failure in one is reported in
        ``errors`` while the rest still complete.

        Args:
            user_id: Whose platforms to sync.
        """
        report = await sync_service.sync_user(user_id)
        return json.dumps({
            "status": "synced" if report.ok else "partial",
            **report.to_dict(),
        })

    @mcp.tool
    async def sync_all_users(
        ctx: Context,
        admin_key: str = "",
    ) -> str:
        """Sync every user with a linked platform, one user at a time.

        Args:
            admin_key: Must match the server's ADMIN_API_KEY.
        """
        if not admin_api_key:
            return json.dumps({
                "status": "error",
                "message": "Batch sync is disabled: ADMIN_API_KEY is not configured.",
            })
        if not hmac.compare_digest(admin_key.encode(), admin_api_key.encode()):
            logger.warning("Rejected batch sync request with a bad admin key")
            return json.dumps({"status": "unauthorized", "message": "Invalid admin key."})

        batch = await sync_service.sync_all_users()
        return json.dumps({"status": "completed", **batch.to_dict()})

    @mcp.tool
    async def sync_history(
        ctx: Context,
        user_id: str,
        limit: int = 20,
    ) -> str:
        """Recent sync runs and link changes for a user, newest first.

        Args:
            user_id: Whose history to show.
            limit: Maximum events to return (default: 20).
        """
        if audit_logger is None:
            return json.dumps({
                "status": "error",
                "message": "Audit logging is not enabled on this server.",
            })

        events = [
            {
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "source_id": event.get("source_id"),
                "status": event.get("status"),
                "records": event.get("records"),
                "duration_ms": event.get("duration_ms"),
                "error": event["metadata"].get("error"),
            }
            for event in audit_logger.get_events(
                action=_HISTORY_ACTIONS, user_id=user_id, limit=limit
            )
        ]
        return json.dumps({"status": "ok", "user_id": user_id, "events": events}, indent=2)
