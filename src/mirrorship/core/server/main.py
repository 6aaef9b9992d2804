"""Mirrorship server entry point: ``python -m mirrorship.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from mirrorship.core.config.settings import get_settings
from mirrorship.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the Mirrorship MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.mirrorship_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger = logging.getLogger(__name__)
    if not settings.mirrorship_allow_insecure_bind and not _is_loopback_host(
        settings.mirrorship_host
    ):
        raise RuntimeError(
            "Refusing to bind Mirrorship to a non-loopback host without an auth layer. "
            "Set MIRRORSHIP_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Mirrorship activity server on %s:%d",
        settings.mirrorship_host,
        settings.mirrorship_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.mirrorship_host,
        port=settings.mirrorship_port,
    )


if __name__ == "__main__":
    run()
