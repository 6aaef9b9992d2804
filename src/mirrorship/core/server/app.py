"""Mirrorship activity MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from typing import Mapping

from fastmcp import FastMCP

from mirrorship.core.audit.logger import AuditLogger
from mirrorship.core.config.settings import Settings, get_settings
from mirrorship.core.storage.database import ActivityDatabase
from mirrorship.core.storage.encryption import EncryptionError, FieldEncryptor
from mirrorship.core.storage.repository import ActivityRepository
from mirrorship.domains.activity.connectors import ActivityProvider
from mirrorship.domains.activity.connectors.github import GitHubProvider
from mirrorship.domains.activity.connectors.leetcode import LeetCodeProvider
from mirrorship.domains.activity.connectors.youtube import YouTubeProvider
from mirrorship.domains.activity.domain_logic.aggregator import ActivityAggregator
from mirrorship.domains.activity.domain_logic.source_config import load_source_configs
from mirrorship.domains.activity.sync.service import SyncService
from mirrorship.domains.activity.tools.dashboard_tools import register_dashboard_tools
from mirrorship.domains.activity.tools.data_management_tools import (
    register_data_management_tools,
)
from mirrorship.domains.activity.tools.manual_entry_tools import register_manual_entry_tools
from mirrorship.domains.activity.tools.sync_tools import register_sync_tools

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def build_providers(settings: Settings) -> dict[str, ActivityProvider]:
    """Create the HTTP providers for every synced platform."""
    common = {
        "timeout_seconds": settings.http_timeout_seconds,
        "timezone_name": settings.report_timezone,
    }
    return {
        "github": GitHubProvider(default_token=settings.github_token, **common),
        "leetcode": LeetCodeProvider(**common),
        "youtube": YouTubeProvider(default_api_key=settings.youtube_api_key, **common),
    }


def create_app(
    *,
    settings_override: Settings | None = None,
    database_override: ActivityDatabase | None = None,
    providers_override: Mapping[str, ActivityProvider] | None = None,
) -> FastMCP:
    """Create and configure the Mirrorship activity MCP server.

    This is the main application factory. It:
    1. Loads settings and the per-source level configuration
    2. Opens the SQLite activity store (and the credential encryptor, if keyed)
    3. Builds the aggregator and the sync service with its providers
    4. Registers all tools
    """
    settings = settings_override or get_settings()

    server = FastMCP(
        "Mirrorship Activity",
        instructions=(
            "Mirrorship activity server. Normalizes GitHub, LeetCode, YouTube and "
            "diary activity into daily heatmaps with streaks, syncs linked "
            "platforms, and suggests what to do today."
        ),
    )

    # --- Source configuration ---
    source_configs = load_source_configs(settings.sources_config_path or None)

    # --- Storage ---
    if database_override is not None:
        database = database_override
    else:
        database = ActivityDatabase(settings.db_path)
    database.initialize()

    encryptor: FieldEncryptor | None = None
    if settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
        except EncryptionError as exc:
            logger.error("Invalid ENCRYPTION_KEY: %s", exc)
            logger.warning("Continuing without credential storage")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured; platform credentials cannot be stored. "
            "Set ENCRYPTION_KEY to link private accounts."
        )

    repository = ActivityRepository(database, encryptor)
    audit_logger = AuditLogger(database)
    logger.info(
        "Activity store ready: %s (schema v%d)", settings.db_path, database.get_schema_version()
    )

    # --- Aggregation and sync ---
    aggregator = ActivityAggregator(repository, source_configs)
    providers = (
        dict(providers_override) if providers_override is not None else build_providers(settings)
    )
    sync_service = SyncService(
        repository,
        providers,
        audit_logger=audit_logger,
        default_days=settings.sync_default_days,
        batch_delay_seconds=settings.batch_sync_delay_seconds,
        timezone_name=settings.report_timezone,
    )

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "Mirrorship Activity",
            "version": VERSION,
            "sources": list(source_configs),
            "providers": sync_service.provider_ids,
            "credential_storage": repository.can_store_credentials,
            "activity_days_stored": repository.count_activity_rows(),
        }

    register_dashboard_tools(
        server,
        aggregator,
        dashboard_days=settings.dashboard_days,
        daily_goal=settings.daily_goal,
        timezone_name=settings.report_timezone,
    )
    register_sync_tools(
        server,
        repository,
        sync_service,
        source_configs,
        audit_logger=audit_logger,
        admin_api_key=settings.admin_api_key,
    )
    register_manual_entry_tools(
        server, repository, source_configs, timezone_name=settings.report_timezone
    )
    register_data_management_tools(server, repository, audit_logger)
    logger.info("Registered dashboard, sync, manual entry and data management tools")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
