"""Data models for the activity persistence layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PlatformLink:
    """A user's account on one activity platform.

    ``credential`` is the decrypted secret (token, session cookie). It is only
    populated when the repository was asked for it; ``credential_stored`` says
    whether one exists at all.
    """

    user_id: str
    source_id: str  # 'github', 'leetcode', 'youtube', ...
    username: str
    credential: str | None = None
    credential_stored: bool = False
    last_sync: str | None = None  # ISO 8601
    sync_enabled: bool = True
    id: str = ""
    created_at: str = ""

    def to_public_dict(self) -> dict:
        """Link details safe to return to a client (no secret)."""
        return {
            "source_id": self.source_id,
            "username": self.username,
            "has_credential": self.credential_stored,
            "last_sync": self.last_sync,
            "sync_enabled": self.sync_enabled,
        }
