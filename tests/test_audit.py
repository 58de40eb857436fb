"""Tests for the audit trail."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from reclaim.core.audit import AuditTrail
from reclaim.models.clean_result import CleanResult
from reclaim.models.scan_result import ScanReport

pytestmark = pytest.mark.usefixtures("isolate_storage")


class TestAuditTrail:
    def test_record_clean(self, isolate_storage):
        audit = AuditTrail()
        audit.record_clean(CleanResult(files_removed=3, bytes_freed=5000, quarantined_ids=["a", "b", "c"]), ["cache"])

        history = json.loads(isolate_storage.read_text())
        (event,) = history["events"]
        assert event["kind"] == "clean"
        assert event["details"]["bytes_freed"] == 5000
        assert event["details"]["quarantined"] == 3
        assert event["details"]["categories"] == ["cache"]

    def test_events_by_kind(self):
        audit = AuditTrail()
        audit.record_scan(ScanReport())
        audit.record_restore("abc", True)
        audit.record_purge(30, 2)

        assert [e["kind"] for e in audit.events()] == ["scan", "restore", "purge"]
        assert len(audit.events("restore")) == 1

    def test_multiple_cleans(self):
        audit = AuditTrail()
        audit.record_clean(CleanResult(files_removed=1, bytes_freed=100))
        audit.record_clean(CleanResult(files_removed=2, bytes_freed=200))

        stats = audit.get_stats("all")
        assert stats["bytes_freed"] == 300
        assert stats["files_removed"] == 3
        assert stats["event_counts"]["clean"] == 2
        assert stats["lifetime_bytes_freed"] == 300

    def test_restore_and_purge_counts(self):
        audit = AuditTrail()
        audit.record_restore("ok", True)
        audit.record_restore("bad", False, "checksum mismatch")
        audit.record_purge(0, 4)

        stats = audit.get_stats()
        assert stats["restored"] == 1
        assert stats["purged"] == 4
        assert audit.events("restore")[1]["details"]["reason"] == "checksum mismatch"

    def test_get_stats_filters_by_period(self, isolate_storage):
        old = (datetime.now(timezone.utc) - timedelta(days=60)).isoformat()
        isolate_storage.write_text(
            json.dumps({"events": [{"timestamp": old, "kind": "clean", "details": {"bytes_freed": 1000}}]})
        )
        audit = AuditTrail()
        audit.record_clean(CleanResult(files_removed=1, bytes_freed=10))

        assert audit.get_stats("today")["bytes_freed"] == 10
        assert audit.get_stats("month")["bytes_freed"] == 10
        assert audit.get_stats("all")["bytes_freed"] == 1010
        assert audit.get_stats("today")["lifetime_bytes_freed"] == 1010

    def test_last_clean_time(self):
        audit = AuditTrail()
        assert audit.get_last_clean_time() is None
        audit.record_clean(CleanResult())
        assert audit.get_last_clean_time() is not None

    def test_corrupt_history_starts_fresh(self, isolate_storage):
        isolate_storage.write_text("{not json")
        audit = AuditTrail()
        assert audit.events() == []
        audit.record_scan(ScanReport())
        assert len(audit.events()) == 1
