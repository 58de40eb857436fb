"""Checksum-addressed quarantine: the reversible alternative to deleting.

Layout under the store root::

    store.json                      format marker
    objects/<cc>/<checksum>.<id>    quarantined file contents
    records/<id>.json               metadata, written only after the move
    journal/<id>.json               move intent, written before the move

A crash between the move and the record write leaves an intent next to a
stored object; ``recover()`` turns that pair back into a record on the
next open. An object with neither record nor intent is an unrecoverable
orphan and is reported, never silently dropped.
"""

from __future__ import annotations

import errno
import hashlib
import json
import logging
import os
import shutil
import stat
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator

from reclaim.core.errors import (
    CorruptionDetected,
    HashReadError,
    QuarantineMoveError,
    QuarantineNotFoundError,
    QuarantineStorageError,
    RestoreConflictError,
    RestoreError,
)
from reclaim.core.hasher import hash_file
from reclaim.models.quarantine_item import QuarantineItem

log = logging.getLogger(__name__)

_FORMAT = "reclaim-quarantine"
_FORMAT_VERSION = 1
_PARTIAL_SUFFIX = ".partial"


@dataclass(slots=True)
class QuarantineListing:
    items: list[QuarantineItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def make_item_id(checksum: str, original: Path, when: datetime) -> str:
    """Derive a stable id from content, origin and time of quarantine."""
    seed = f"{checksum}\0{original}\0{when.isoformat()}".encode()
    return hashlib.sha256(seed).hexdigest()[:16]


class QuarantineStore:
    """Moves files into a holding area and back out again.

    Metadata writes are serialised through one lock and land atomically via
    ``os.replace``, so concurrent quarantines of different files are safe.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._lock = threading.RLock()
        self._ready = False
        self.recovery_warnings: list[str] = []

    @property
    def objects_dir(self) -> Path:
        return self.root / "objects"

    @property
    def records_dir(self) -> Path:
        return self.root / "records"

    @property
    def journal_dir(self) -> Path:
        return self.root / "journal"

    def stored_path(self, checksum: str, item_id: str) -> Path:
        return self.objects_dir / checksum[:2] / f"{checksum}.{item_id}"

    # ── lifecycle ──────────────────────────────────────────────────────

    def open(self) -> None:
        """Create the layout if needed and recover from interrupted moves.

        Raises:
            QuarantineStorageError: The store root cannot be created or
                belongs to something else.
        """
        with self._lock:
            if self._ready:
                return
            marker = self.root / "store.json"
            try:
                for directory in (self.objects_dir, self.records_dir, self.journal_dir):
                    directory.mkdir(parents=True, exist_ok=True, mode=0o700)
                if marker.exists():
                    info = json.loads(marker.read_text(encoding="utf-8"))
                    if info.get("format") != _FORMAT:
                        raise QuarantineStorageError(f"{self.root} is not a quarantine store")
                else:
                    self._write_json(marker, {"format": _FORMAT, "version": _FORMAT_VERSION})
                self.recovery_warnings = self.recover()
            except (OSError, json.JSONDecodeError) as e:
                raise QuarantineStorageError(f"Quarantine storage unusable at {self.root}: {e}") from e
            self._ready = True

    def recover(self) -> list[str]:
        """Reconcile journal intents and objects with metadata records."""
        warnings: list[str] = []
        with self._lock:
            for intent_file in sorted(self.journal_dir.glob("*.json")):
                warning = self._recover_intent(intent_file)
                if warning:
                    warnings.append(warning)

            for partial in self.objects_dir.glob(f"*/*{_PARTIAL_SUFFIX}"):
                # Sources are only unlinked after a partial is promoted.
                log.warning("Removing interrupted copy: %s", partial)
                partial.unlink(missing_ok=True)

            known = {p.stem for p in self.records_dir.glob("*.json")}
            for obj in self._iter_objects():
                if _object_id(obj) not in known:
                    log.error("Unrecoverable quarantined file without metadata: %s", obj)
                    warnings.append(f"Orphaned quarantine file without metadata: {obj}")
        return warnings

    def _recover_intent(self, intent_file: Path) -> str | None:
        try:
            record = json.loads(intent_file.read_text(encoding="utf-8"))
            item_id = record["id"]
            checksum = record["checksum"]
        except (OSError, json.JSONDecodeError, KeyError):
            log.error("Discarding unreadable quarantine intent: %s", intent_file)
            intent_file.unlink(missing_ok=True)
            return f"Discarded unreadable quarantine intent: {intent_file.name}"

        record_file = self.records_dir / f"{item_id}.json"
        stored = self.stored_path(checksum, item_id)
        original = Path(record["original_path"])

        if record_file.exists():
            intent_file.unlink(missing_ok=True)
            return None

        if stored.exists():
            try:
                actual = hash_file(stored)
            except HashReadError as e:
                log.error("Cannot verify interrupted quarantine %s: %s", item_id, e)
                return f"Cannot verify interrupted quarantine of {original}: {e}"
            if actual != checksum:
                record.setdefault("metadata", {})["checksum_at_quarantine"] = checksum
                record["checksum"] = actual
                new_stored = self.stored_path(actual, item_id)
                new_stored.parent.mkdir(parents=True, exist_ok=True)
                os.replace(stored, new_stored)
                record["stored_name"] = new_stored.name
            record.setdefault("metadata", {})["repaired"] = True
            self._write_json(record_file, record)
            intent_file.unlink(missing_ok=True)
            log.warning("Repaired metadata for interrupted quarantine of %s", original)
            return f"Repaired metadata for interrupted quarantine of {original}"

        intent_file.unlink(missing_ok=True)
        if os.path.lexists(original):
            log.info("Quarantine of %s never started, original untouched", original)
            return None
        log.error("Quarantine of %s was interrupted and the file is gone", original)
        return f"File lost during interrupted quarantine: {original}"

    # ── operations ─────────────────────────────────────────────────────

    def quarantine(
        self,
        path: Path | str,
        category: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> QuarantineItem:
        """Move *path* into the store and return its record.

        Raises:
            QuarantineMoveError: The file could not be hashed or moved.
            QuarantineStorageError: The store could not record the move.
        """
        self.open()
        path = Path(path).absolute()
        try:
            st = os.stat(path, follow_symlinks=False)
        except OSError as e:
            raise QuarantineMoveError(f"{path}: {e.strerror or e}") from e
        if not stat.S_ISREG(st.st_mode):
            raise QuarantineMoveError(f"{path}: not a regular file")
        try:
            checksum = hash_file(path)
        except HashReadError as e:
            raise QuarantineMoveError(str(e)) from e

        now = datetime.now(timezone.utc)
        item_id = make_item_id(checksum, path, now)
        item = QuarantineItem(
            id=item_id,
            original_path=path,
            stored_path=self.stored_path(checksum, item_id),
            size=st.st_size,
            checksum=checksum,
            quarantined_at=now,
            category=category,
            metadata=dict(metadata or {}),
        )

        intent_file = self.journal_dir / f"{item_id}.json"
        try:
            self._write_json(intent_file, item.to_record())
        except OSError as e:
            raise QuarantineStorageError(f"Cannot write quarantine journal: {e}") from e

        try:
            self._move_in(path, item.stored_path, st, checksum)
        except (OSError, QuarantineMoveError) as e:
            intent_file.unlink(missing_ok=True)
            if isinstance(e, QuarantineMoveError):
                raise
            raise QuarantineMoveError(f"{path}: {e.strerror or e}") from e

        try:
            self._write_json(self.records_dir / f"{item_id}.json", item.to_record())
        except OSError as e:
            # The intent stays behind so the next open() can repair the record.
            raise QuarantineStorageError(f"Cannot record quarantine of {path}: {e}") from e
        intent_file.unlink(missing_ok=True)

        log.info("Quarantined %s as %s (%d bytes)", path, item_id, item.size)
        return item

    def restore(self, item_id: str) -> QuarantineItem:
        """Move a quarantined file back to where it came from.

        Raises:
            QuarantineNotFoundError: No such id.
            RestoreConflictError: Original path occupied or checksum mismatch.
            RestoreError: Parent directory gone or stored file missing.
        """
        self.open()
        with self._lock:
            item = self.get(item_id)
            if item is None:
                raise QuarantineNotFoundError(f"No quarantined item with id {item_id}")

            if not item.stored_path.is_file():
                raise RestoreError(f"Stored file for {item_id} is missing: {item.stored_path}")
            try:
                actual = hash_file(item.stored_path)
            except HashReadError as e:
                raise RestoreError(str(e)) from e
            if actual != item.checksum:
                raise RestoreConflictError(
                    f"Checksum mismatch for {item_id}: quarantined file was modified or corrupted"
                )

            dest = item.original_path
            if not dest.parent.is_dir():
                raise RestoreError(f"Cannot restore {dest}: parent directory no longer exists")
            if os.path.lexists(dest):
                raise RestoreConflictError(f"Cannot restore {dest}: a different file now occupies that path")

            try:
                self._move_out(item.stored_path, dest)
            except FileExistsError as e:
                raise RestoreConflictError(f"Cannot restore {dest}: path was taken during restore") from e
            except OSError as e:
                raise RestoreError(f"Cannot restore {dest}: {e.strerror or e}") from e

            (self.records_dir / f"{item_id}.json").unlink(missing_ok=True)
            _prune_empty(item.stored_path.parent)

        log.info("Restored %s to %s", item_id, dest)
        return item

    def purge(self, older_than_days: float) -> int:
        """Permanently erase entries quarantined at least *older_than_days* ago.

        This is the only irreversible operation of the store.
        """
        if older_than_days < 0:
            raise ValueError("older_than_days must not be negative")
        self.open()
        cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
        purged = 0
        with self._lock:
            for item in list(self._iter_items()):
                if item.quarantined_at > cutoff:
                    continue
                try:
                    item.stored_path.unlink(missing_ok=True)
                except OSError as e:
                    log.warning("Cannot purge %s: %s", item.stored_path, e)
                    continue
                (self.records_dir / f"{item.id}.json").unlink(missing_ok=True)
                _prune_empty(item.stored_path.parent)
                purged += 1

        log.info("Purged %d quarantined item(s) older than %s day(s)", purged, older_than_days)
        return purged

    def get(self, item_id: str) -> QuarantineItem | None:
        record_file = self.records_dir / f"{item_id}.json"
        if not record_file.is_file():
            return None
        return self._read_item(record_file)

    def list_items(self, verify: bool = False) -> QuarantineListing:
        """Enumerate holdings without changing anything.

        Presence and size are always checked; ``verify=True`` also rehashes
        every stored file. Mismatches mark the item not intact and add a
        warning.
        """
        self.open()
        listing = QuarantineListing(warnings=list(self.recovery_warnings))
        known: set[str] = set()

        for record_file in sorted(self.records_dir.glob("*.json")):
            try:
                item = self._read_item(record_file)
            except CorruptionDetected as e:
                listing.warnings.append(str(e))
                continue
            known.add(item.id)
            problem = self._check(item, verify)
            if problem:
                item.intact = False
                log.warning("%s", problem)
                listing.warnings.append(problem)
            listing.items.append(item)

        pending = {p.stem for p in self.journal_dir.glob("*.json")}
        for obj in self._iter_objects():
            obj_id = _object_id(obj)
            if obj_id not in known and obj_id not in pending:
                listing.warnings.append(f"Orphaned quarantine file without metadata: {obj}")

        listing.items.sort(key=lambda i: i.quarantined_at)
        return listing

    # ── internals ──────────────────────────────────────────────────────

    def _check(self, item: QuarantineItem, verify: bool) -> str | None:
        try:
            size = item.stored_path.stat().st_size
        except OSError:
            return f"Quarantined file for {item.original_path} is missing ({item.id})"
        if size != item.size:
            return f"Quarantined file for {item.original_path} changed size ({item.id})"
        if verify:
            try:
                if hash_file(item.stored_path) != item.checksum:
                    return f"Checksum mismatch for quarantined {item.original_path} ({item.id})"
            except HashReadError as e:
                return f"Cannot verify quarantined {item.original_path}: {e}"
        return None

    def _iter_items(self) -> Iterator[QuarantineItem]:
        for record_file in sorted(self.records_dir.glob("*.json")):
            try:
                yield self._read_item(record_file)
            except CorruptionDetected as e:
                log.warning("%s", e)

    def _iter_objects(self) -> Iterator[Path]:
        for obj in self.objects_dir.glob("*/*"):
            if obj.is_file() and not obj.name.endswith(_PARTIAL_SUFFIX):
                yield obj

    def _read_item(self, record_file: Path) -> QuarantineItem:
        try:
            record = json.loads(record_file.read_text(encoding="utf-8"))
            return QuarantineItem.from_record(record, self.stored_path(record["checksum"], record["id"]))
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            raise CorruptionDetected(f"Unreadable quarantine record {record_file.name}: {e}") from e

    def _write_json(self, target: Path, data: dict[str, Any]) -> None:
        tmp = target.with_name(target.name + ".tmp")
        with self._lock:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, target)

    def _move_in(self, src: Path, dst: Path, st: os.stat_result, checksum: str) -> None:
        dst.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.rename(src, dst)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            self._copy_in(src, dst, checksum)
            return

        moved = dst.stat()
        if (moved.st_size, moved.st_mtime_ns) != (st.st_size, st.st_mtime_ns):
            # Written to between hashing and the move; put it back untouched.
            os.rename(dst, src)
            raise QuarantineMoveError(f"{src}: file changed while being quarantined")

    @staticmethod
    def _copy_in(src: Path, dst: Path, checksum: str) -> None:
        partial = dst.with_name(dst.name + _PARTIAL_SUFFIX)
        shutil.copy2(src, partial)
        try:
            copied = hash_file(partial)
        except HashReadError as e:
            partial.unlink(missing_ok=True)
            raise QuarantineMoveError(str(e)) from e
        if copied != checksum:
            partial.unlink(missing_ok=True)
            raise QuarantineMoveError(f"{src}: file changed while being quarantined")
        os.replace(partial, dst)
        try:
            os.unlink(src)
        except OSError:
            # The source stays put, so the copy must not outlive this call.
            dst.unlink(missing_ok=True)
            raise

    @staticmethod
    def _move_out(src: Path, dst: Path) -> None:
        """Place *src* at *dst* without ever replacing an existing file."""
        try:
            os.link(src, dst)
        except FileExistsError:
            raise
        except OSError:
            with open(src, "rb") as fin, open(dst, "xb") as fout:
                try:
                    shutil.copyfileobj(fin, fout)
                    fout.flush()
                    os.fsync(fout.fileno())
                    shutil.copystat(src, dst)
                except BaseException:
                    fout.close()
                    dst.unlink(missing_ok=True)
                    raise
        os.unlink(src)


def _object_id(obj: Path) -> str:
    return obj.name.rsplit(".", 1)[-1]


def _prune_empty(directory: Path) -> None:
    try:
        directory.rmdir()
    except OSError:
        pass
