"""Tests for the quarantine store."""

from __future__ import annotations

import errno
import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from reclaim.core.errors import (
    QuarantineMoveError,
    QuarantineNotFoundError,
    QuarantineStorageError,
    RestoreConflictError,
    RestoreError,
)
from reclaim.core.hasher import hash_file
from reclaim.core.quarantine import QuarantineStore, make_item_id
from tests.conftest import make_file


@pytest.fixture
def store(tmp_path):
    return QuarantineStore(tmp_path / "quarantine")


class TestQuarantine:
    def test_round_trip(self, tmp_path, store):
        original = make_file(tmp_path / "home" / "cache" / "blob.bin", b"precious bytes")
        checksum = hash_file(original)

        item = store.quarantine(original, category="cache", metadata={"scan_result_id": "abc"})

        assert not original.exists()
        assert item.stored_path.is_file()
        assert item.size == len(b"precious bytes")
        assert item.checksum == checksum
        assert store.get(item.id).original_path == original

        store.restore(item.id)

        assert original.read_bytes() == b"precious bytes"
        assert hash_file(original) == checksum
        assert store.get(item.id) is None
        assert not item.stored_path.exists()

    def test_record_keeps_metadata(self, tmp_path, store):
        original = make_file(tmp_path / "f", "x")
        item = store.quarantine(original, category="temp", metadata={"scan_result": "Temp"})

        (listed,) = store.list_items().items
        assert listed.id == item.id
        assert listed.category == "temp"
        assert listed.metadata == {"scan_result": "Temp"}
        assert listed.intact

    def test_store_layout(self, tmp_path, store):
        item = store.quarantine(make_file(tmp_path / "f", "x"))
        assert (store.root / "store.json").is_file()
        assert (store.records_dir / f"{item.id}.json").is_file()
        assert item.stored_path.parent.parent == store.objects_dir
        assert list(store.journal_dir.iterdir()) == []

    def test_same_content_twice_kept_apart(self, tmp_path, store):
        a = store.quarantine(make_file(tmp_path / "a", "same"))
        b = store.quarantine(make_file(tmp_path / "b", "same"))
        assert a.id != b.id
        assert a.stored_path != b.stored_path
        assert len(store.list_items().items) == 2

    def test_missing_file_raises_move_error(self, tmp_path, store):
        with pytest.raises(QuarantineMoveError):
            store.quarantine(tmp_path / "missing")

    def test_directory_rejected(self, tmp_path, store):
        (tmp_path / "dir").mkdir()
        with pytest.raises(QuarantineMoveError):
            store.quarantine(tmp_path / "dir")

    def test_cross_device_move_copies_and_verifies(self, tmp_path, store, monkeypatch):
        original = make_file(tmp_path / "f", b"cross device")
        real_rename = os.rename

        def fake_rename(src, dst):
            if str(src) == str(original):
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            return real_rename(src, dst)

        monkeypatch.setattr("reclaim.core.quarantine.os.rename", fake_rename)
        item = store.quarantine(original)

        assert not original.exists()
        assert item.stored_path.read_bytes() == b"cross device"

    def test_cross_device_source_unremovable_leaves_store_unchanged(self, tmp_path, store, monkeypatch):
        original = make_file(tmp_path / "sticky" / "f", b"owned by someone else")
        real_rename = os.rename
        real_unlink = os.unlink

        def fake_rename(src, dst):
            if str(src) == str(original):
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            return real_rename(src, dst)

        def fake_unlink(path, *args, **kwargs):
            if str(path) == str(original):
                raise PermissionError(errno.EPERM, "Operation not permitted")
            return real_unlink(path, *args, **kwargs)

        monkeypatch.setattr("reclaim.core.quarantine.os.rename", fake_rename)
        monkeypatch.setattr("reclaim.core.quarantine.os.unlink", fake_unlink)
        with pytest.raises(QuarantineMoveError):
            store.quarantine(original)

        assert original.read_bytes() == b"owned by someone else"
        assert [p for p in store.objects_dir.rglob("*") if p.is_file()] == []
        assert not any(store.journal_dir.iterdir())
        listing = store.list_items()
        assert listing.items == []
        assert listing.warnings == []

    def test_unusable_root(self, tmp_path):
        blocker = make_file(tmp_path / "not_a_dir", "x")
        with pytest.raises(QuarantineStorageError):
            QuarantineStore(blocker / "store").open()

    def test_foreign_directory_refused(self, tmp_path):
        root = tmp_path / "other"
        make_file(root / "store.json", json.dumps({"format": "something-else"}))
        with pytest.raises(QuarantineStorageError):
            QuarantineStore(root).open()

    def test_make_item_id_is_stable(self, tmp_path):
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert make_item_id("ab", tmp_path, when) == make_item_id("ab", tmp_path, when)
        assert len(make_item_id("ab", tmp_path, when)) == 16


class TestRestore:
    def test_unknown_id(self, store):
        with pytest.raises(QuarantineNotFoundError):
            store.restore("nope")

    def test_occupied_destination_is_conflict(self, tmp_path, store):
        original = make_file(tmp_path / "f", "old")
        item = store.quarantine(original)
        make_file(original, "someone else")

        with pytest.raises(RestoreConflictError):
            store.restore(item.id)
        assert original.read_text() == "someone else"
        assert item.stored_path.is_file()

    def test_checksum_mismatch_is_conflict(self, tmp_path, store):
        item = store.quarantine(make_file(tmp_path / "f", "original"))
        item.stored_path.write_text("tampered")

        with pytest.raises(RestoreConflictError):
            store.restore(item.id)

    def test_missing_parent(self, tmp_path, store):
        original = make_file(tmp_path / "gone" / "f", "x")
        item = store.quarantine(original)
        original.parent.rmdir()

        with pytest.raises(RestoreError) as exc_info:
            store.restore(item.id)
        assert not isinstance(exc_info.value, RestoreConflictError)
        assert store.get(item.id) is not None

    def test_missing_stored_file(self, tmp_path, store):
        item = store.quarantine(make_file(tmp_path / "f", "x"))
        item.stored_path.unlink()
        with pytest.raises(RestoreError):
            store.restore(item.id)

    def test_failed_copy_back_leaves_original_path_free(self, tmp_path, store, monkeypatch):
        payload = b"p" * 4096
        original = make_file(tmp_path / "f", payload)
        item = store.quarantine(original)

        def fake_link(src, dst):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        def short_copy(fin, fout):
            fout.write(fin.read(1000))
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr("reclaim.core.quarantine.os.link", fake_link)
        monkeypatch.setattr("reclaim.core.quarantine.shutil.copyfileobj", short_copy)
        with pytest.raises(RestoreError):
            store.restore(item.id)

        assert not os.path.lexists(original)
        assert item.stored_path.is_file()
        assert store.get(item.id) is not None

        monkeypatch.undo()
        store.restore(item.id)
        assert original.read_bytes() == payload


class TestPurge:
    def test_purge_zero_removes_everything(self, tmp_path, store):
        item = store.quarantine(make_file(tmp_path / "f", "x"))

        assert store.purge(0) == 1

        assert store.get(item.id) is None
        assert not item.stored_path.exists()
        with pytest.raises(QuarantineNotFoundError):
            store.restore(item.id)

    def test_purge_keeps_recent(self, tmp_path, store):
        store.quarantine(make_file(tmp_path / "f", "x"))
        assert store.purge(30) == 0
        assert len(store.list_items().items) == 1

    def test_purge_old_items(self, tmp_path, store):
        item = store.quarantine(make_file(tmp_path / "f", "x"))
        record_file = store.records_dir / f"{item.id}.json"
        record = json.loads(record_file.read_text())
        record["quarantined_at"] = (datetime.now(timezone.utc) - timedelta(days=40)).isoformat()
        record_file.write_text(json.dumps(record))

        assert store.purge(30) == 1

    def test_negative_age_rejected(self, store):
        with pytest.raises(ValueError):
            store.purge(-1)


class TestRecovery:
    def test_interrupted_quarantine_is_repaired(self, tmp_path):
        root = tmp_path / "quarantine"
        first = QuarantineStore(root)
        item = first.quarantine(make_file(tmp_path / "f", "payload"))

        # Simulate a crash after the move but before the record write.
        record_file = first.records_dir / f"{item.id}.json"
        intent = record_file.read_text()
        record_file.unlink()
        (first.journal_dir / f"{item.id}.json").write_text(intent)

        second = QuarantineStore(root)
        listing = second.list_items()

        (recovered,) = listing.items
        assert recovered.id == item.id
        assert recovered.metadata.get("repaired") is True
        assert any("Repaired" in w for w in listing.warnings)
        assert list(second.journal_dir.iterdir()) == []

        second.restore(item.id)
        assert (tmp_path / "f").read_text() == "payload"

    def test_intent_without_move_is_dropped(self, tmp_path):
        root = tmp_path / "quarantine"
        store = QuarantineStore(root)
        store.open()
        original = make_file(tmp_path / "f", "untouched")
        (store.journal_dir / "deadbeef.json").write_text(
            json.dumps({"id": "deadbeef", "checksum": "00" * 32, "original_path": str(original)})
        )

        fresh = QuarantineStore(root)
        assert fresh.list_items().warnings == []
        assert original.exists()
        assert list(fresh.journal_dir.iterdir()) == []

    def test_orphan_object_reported(self, tmp_path, store):
        store.open()
        orphan = make_file(store.objects_dir / "ab" / "abcdef.0123456789abcdef", "lost")

        listing = QuarantineStore(store.root).list_items()

        assert any("Orphaned" in w for w in listing.warnings)
        assert orphan.exists()

    def test_verify_detects_corruption(self, tmp_path, store):
        item = store.quarantine(make_file(tmp_path / "f", "abcd"))
        item.stored_path.write_text("wxyz")  # same size, different content

        assert store.list_items().items[0].intact
        listing = store.list_items(verify=True)
        assert not listing.items[0].intact
        assert any("Checksum mismatch" in w for w in listing.warnings)

    def test_missing_object_not_intact(self, tmp_path, store):
        item = store.quarantine(make_file(tmp_path / "f", "abcd"))
        item.stored_path.unlink()

        listing = store.list_items()
        assert not listing.items[0].intact
