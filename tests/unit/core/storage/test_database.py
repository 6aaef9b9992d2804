"""Tests for ActivityDatabase: schema creation, versioning, lifecycle."""

from __future__ import annotations

import sqlite3

import pytest

from mirrorship.core.storage.database import (
    MIGRATIONS,
    SCHEMA_VERSION,
    ActivityDatabase,
    DatabaseError,
)


class TestInitialization:
    def test_in_memory_initialize(self):
        db = ActivityDatabase(":memory:")
        db.initialize()
        assert db.connection is not None
        db.close()

    def test_double_initialize_is_idempotent(self):
        db = ActivityDatabase(":memory:")
        db.initialize()
        conn1 = db.connection
        db.initialize()
        assert db.connection is conn1
        db.close()

    def test_connection_before_init_raises(self):
        db = ActivityDatabase(":memory:")
        with pytest.raises(DatabaseError, match="not initialized"):
            _ = db.connection

    def test_context_manager(self):
        with ActivityDatabase(":memory:") as db:
            assert db.connection is not None
        with pytest.raises(DatabaseError):
            _ = db.connection


class TestSchema:
    def test_schema_version_recorded(self):
        with ActivityDatabase(":memory:") as db:
            assert db.get_schema_version() == SCHEMA_VERSION

    def test_every_migration_recorded_in_order(self):
        with ActivityDatabase(":memory:") as db:
            rows = db.connection.execute(
                "SELECT version FROM schema_version ORDER BY rowid"
            ).fetchall()
        assert [row[0] for row in rows] == [version for version, _, _ in MIGRATIONS]

    def test_pending_migrations_applied_on_reopen(self, tmp_path):
        db_path = str(tmp_path / "activity.db")
        with ActivityDatabase(db_path) as db:
            db.connection.execute("DELETE FROM schema_version WHERE version > 1")
            db.connection.execute("DROP TABLE audit_log")
            db.connection.commit()

        with ActivityDatabase(db_path) as db:
            assert db.get_schema_version() == SCHEMA_VERSION
            db.connection.execute("SELECT COUNT(*) FROM audit_log")

    def test_tables_created(self):
        with ActivityDatabase(":memory:") as db:
            cursor = db.connection.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            tables = {row[0] for row in cursor.fetchall()}
        assert {"raw_activity", "platform_links", "schema_version", "audit_log"} <= tables

    def test_indexes_created(self):
        expected_indexes = {
            "idx_activity_lookup",
            "idx_activity_date",
            "idx_links_user",
            "idx_audit_timestamp",
            "idx_audit_action",
            "idx_audit_user",
        }
        with ActivityDatabase(":memory:") as db:
            cursor = db.connection.execute("SELECT name FROM sqlite_master WHERE type='index'")
            indexes = {row[0] for row in cursor.fetchall()}
        for idx in expected_indexes:
            assert idx in indexes, f"Missing index: {idx}"

    def test_one_row_per_user_source_day(self):
        insert = (
            "INSERT INTO raw_activity (id, user_id, source_id, activity_date, count, kind)"
            " VALUES (?, 'u1', 'github', '2024-01-01', 1, 'commit')"
        )
        with ActivityDatabase(":memory:") as db:
            db.connection.execute(insert, ("a",))
            with pytest.raises(sqlite3.IntegrityError):
                db.connection.execute(insert, ("b",))

    def test_negative_count_rejected(self):
        with ActivityDatabase(":memory:") as db:
            with pytest.raises(sqlite3.IntegrityError):
                db.connection.execute(
                    "INSERT INTO raw_activity (id, user_id, source_id, activity_date, count, kind)"
                    " VALUES ('a', 'u1', 'github', '2024-01-01', -1, 'commit')"
                )

    def test_wal_mode_enabled(self):
        with ActivityDatabase(":memory:") as db:
            mode = db.connection.execute("PRAGMA journal_mode").fetchone()[0].lower()
            # In-memory databases report 'memory' instead of 'wal'
            assert mode in ("wal", "memory")


class TestFileDatabase:
    def test_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "activity.db"
        db = ActivityDatabase(str(db_path))
        db.initialize()
        assert db_path.exists()
        assert db.get_schema_version() == SCHEMA_VERSION
        db.close()

    def test_reopen_keeps_version(self, tmp_path):
        db_path = str(tmp_path / "activity.db")
        with ActivityDatabase(db_path) as db:
            db.connection.execute(
                "INSERT INTO raw_activity (id, user_id, source_id, activity_date, count, kind)"
                " VALUES ('a', 'u1', 'diary', '2024-01-01', 2, 'entry')"
            )
            db.connection.commit()

        with ActivityDatabase(db_path) as db:
            assert db.get_schema_version() == SCHEMA_VERSION
            versions = db.connection.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
            assert versions == len(MIGRATIONS)
            assert db.connection.execute("SELECT COUNT(*) FROM raw_activity").fetchone()[0] == 1


class TestClose:
    def test_close_makes_connection_unavailable(self):
        db = ActivityDatabase(":memory:")
        db.initialize()
        db.close()
        with pytest.raises(DatabaseError, match="not initialized"):
            _ = db.connection

    def test_double_close_is_safe(self):
        db = ActivityDatabase(":memory:")
        db.initialize()
        db.close()
        db.close()
