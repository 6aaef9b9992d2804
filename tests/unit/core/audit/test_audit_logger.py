"""Tests for the AuditLogger."""

from __future__ import annotations

from mirrorship.core.audit.logger import AuditEvent, AuditLogger
from mirrorship.core.storage.database import ActivityDatabase


class TestLogEvent:
    def test_returns_id_and_persists(self, audit_logger: AuditLogger):
        event_id = audit_logger.log_event(AuditEvent(action="sync", user_id="u1"))
        assert event_id
        assert audit_logger.count_events() == 1

    def test_metadata_round_trip(self, audit_logger):
        audit_logger.log_event(AuditEvent(action="link", metadata={"reason": "manual"}))
        event = audit_logger.get_events()[0]
        assert event["metadata"] == {"reason": "manual"}
        assert "metadata_json" not in event

    def test_write_failure_swallowed(self):
        db = ActivityDatabase(":memory:")  # never initialized
        assert AuditLogger(db).log_event(AuditEvent(action="sync")) == ""


class TestConvenienceWriters:
    def test_log_sync_success(self, audit_logger):
        audit_logger.log_sync("u1", "github", records=12, duration_ms=40.5)
        event = audit_logger.get_events(action="sync")[0]
        assert event["user_id"] == "u1"
        assert event["source_id"] == "github"
        assert event["records"] == 12
        assert event["duration_ms"] == 40.5
        assert event["status"] == "success"
        assert event["metadata"] == {}

    def test_log_sync_failure(self, audit_logger):
        audit_logger.log_sync(
            "u1", "youtube", status="failure", error_type="SourceUnavailableError",
            error_message="youtube: quota exceeded",
        )
        event = audit_logger.get_events(action="sync")[0]
        assert event["status"] == "failure"
        assert event["error_type"] == "SourceUnavailableError"
        assert event["metadata"]["error"] == "youtube: quota exceeded"

    def test_link_changes(self, audit_logger):
        audit_logger.log_link_change("u1", "github", linked=True)
        audit_logger.log_link_change("u1", "github", linked=False)
        assert audit_logger.count_events(action="link") == 1
        assert audit_logger.count_events(action="unlink") == 1

    def test_data_delete(self, audit_logger):
        audit_logger.log_data_delete(tool_name="delete_all_user_data", user_id="u1", count=30)
        event = audit_logger.get_events(action="data_delete")[0]
        assert event["records"] == 30
        assert event["tool_name"] == "delete_all_user_data"


class TestQuery:
    def test_filters(self, audit_logger):
        audit_logger.log_sync("u1", "github")
        audit_logger.log_sync("u1", "leetcode")
        audit_logger.log_sync("u2", "github")
        audit_logger.log_link_change("u1", "github", linked=True)
        audit_logger.log_data_delete(user_id="u1", count=1)

        assert len(audit_logger.get_events(user_id="u1")) == 4
        assert len(audit_logger.get_events(source_id="github")) == 3
        assert len(audit_logger.get_events(action=("sync", "link"), user_id="u1")) == 3
        assert len(audit_logger.get_events(since="2000-01-01")) == 5
        assert audit_logger.get_events(since="9999-01-01") == []

    def test_newest_first_and_limit(self, audit_logger):
        for source_id in ("github", "leetcode", "youtube"):
            audit_logger.log_sync("u1", source_id)
        events = audit_logger.get_events(limit=2)
        assert len(events) == 2
        assert events[0]["timestamp"] >= events[1]["timestamp"]
