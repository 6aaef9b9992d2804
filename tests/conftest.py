"""Shared test fixtures for Mirrorship tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("GITHUB_TOKEN", "")
    monkeypatch.setenv("YOUTUBE_API_KEY", "")
    monkeypatch.setenv("ADMIN_API_KEY", "")
    monkeypatch.setenv("REPORT_TIMEZONE", "UTC")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def activity_db():
    """Create an in-memory ActivityDatabase for testing."""
    from mirrorship.core.storage.database import ActivityDatabase

    db = ActivityDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from mirrorship.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def activity_repository(activity_db, field_encryptor):
    """Create an ActivityRepository backed by in-memory SQLite."""
    from mirrorship.core.storage.repository import ActivityRepository

    return ActivityRepository(activity_db, field_encryptor)


@pytest.fixture
def audit_logger(activity_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from mirrorship.core.audit.logger import AuditLogger

    return AuditLogger(activity_db)


@pytest.fixture
def source_configs():
    """The bundled source definitions."""
    from mirrorship.domains.activity.domain_logic.source_config import load_source_configs

    return load_source_configs()
