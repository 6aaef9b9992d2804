"""SQLite storage for the Mirrorship activity store.

Schema changes are kept as an ordered list of migrations; opening a
database applies whichever of them its ``schema_version`` table has not
recorded yet.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

_ACTIVITY_TABLES = """
-- One row per (user, source, day); re-sync replaces the row for that day
CREATE TABLE IF NOT EXISTS raw_activity (
    id             TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    source_id      TEXT NOT NULL,
    activity_date  TEXT NOT NULL,
    count          INTEGER NOT NULL CHECK (count >= 0),
    kind           TEXT NOT NULL,
    created_at     TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (user_id, source_id, activity_date)
);

-- Platform accounts linked by each user
CREATE TABLE IF NOT EXISTS platform_links (
    id             TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    source_id      TEXT NOT NULL,
    username       TEXT NOT NULL,
    credential_enc TEXT,
    last_sync      TEXT,
    sync_enabled   INTEGER NOT NULL DEFAULT 1,
    created_at     TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (user_id, source_id)
);

CREATE INDEX IF NOT EXISTS idx_activity_lookup ON raw_activity(user_id, source_id, activity_date);
CREATE INDEX IF NOT EXISTS idx_activity_date   ON raw_activity(activity_date);
CREATE INDEX IF NOT EXISTS idx_links_user      ON platform_links(user_id);
"""

_AUDIT_TABLE = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    user_id         TEXT,
    source_id       TEXT,
    records         INTEGER,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_user      ON audit_log(user_id);
"""

# (version, description, DDL), oldest first
MIGRATIONS: tuple[tuple[int, str, str], ...] = (
    (1, "raw_activity and platform_links tables", _ACTIVITY_TABLES),
    (2, "audit_log table", _AUDIT_TABLE),
)

SCHEMA_VERSION = MIGRATIONS[-1][0]


class DatabaseError(Exception):
    """Raised when database operations fail."""


class ActivityDatabase:
    """Owns the SQLite connection behind the repository and audit logger.

    ``":memory:"`` gives a throwaway database (used by tests); any other
    path is a file, created along with its parent directories on first open.

    Usage::

        with ActivityDatabase("~/.mirrorship/activity.db") as db:
            db.connection.execute("SELECT COUNT(*) FROM raw_activity")
    """

    def __init__(self, db_path: str = MEMORY) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: If :meth:`initialize` has not been called.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        self._conn = self._connect()
        self._migrate()
        logger.info("Activity database initialized: %s", self._db_path)

    def _connect(self) -> sqlite3.Connection:
        if self._db_path == MEMORY:
            target = MEMORY
        else:
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_file)

        conn = sqlite3.connect(target)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _migrate(self) -> None:
        conn = self.connection
        conn.execute(_VERSION_TABLE)
        current = self.get_schema_version()

        for version, description, ddl in MIGRATIONS:
            if version <= current:
                continue
            conn.executescript(ddl)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            conn.commit()
            logger.info("Applied schema migration v%d: %s", version, description)

    def get_schema_version(self) -> int:
        """Highest migration recorded, or 0 for a fresh database."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Activity database closed")

    def __enter__(self) -> ActivityDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
