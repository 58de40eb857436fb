"""Executes removal of user-approved scan results."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generator, Sequence

from reclaim.core.errors import ProtectedPathError, QuarantineMoveError, QuarantineStorageError
from reclaim.core.quarantine import QuarantineStore
from reclaim.core.safety import ensure_removable
from reclaim.models.clean_result import CleanProgress, CleanResult
from reclaim.models.location import Safety
from reclaim.models.scan_result import ScanResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanPolicy:
    """How approved results may be removed.

    ``permanent`` holds ids the user separately confirmed for permanent
    deletion; everything else is quarantined. ``explicit`` holds ids the
    user picked by hand, the only way a ``never-auto`` result is acted on.
    """

    permanent: frozenset[str] = frozenset()
    explicit: frozenset[str] = frozenset()


class CleanRun:
    """One clean batch as a stream of progress records.

    Iterate to drive the batch; ``result`` is set once iteration ends.
    """

    def __init__(self, records: Generator[CleanProgress, None, CleanResult]) -> None:
        self._records = records
        self.result: CleanResult | None = None

    def __iter__(self) -> CleanRun:
        return self

    def __next__(self) -> CleanProgress:
        try:
            return next(self._records)
        except StopIteration as stop:
            self.result = stop.value
            raise


class CleaningOrchestrator:
    """Routes approved results through quarantine, or deletes on explicit request."""

    def __init__(self, store: QuarantineStore, workers: int = 1, home: Path | None = None) -> None:
        self.store = store
        self.workers = max(1, workers)
        self.home = home

    def run(
        self,
        approved: Sequence[ScanResult],
        policy: CleanPolicy | None = None,
        cancel: threading.Event | None = None,
    ) -> CleanRun:
        return CleanRun(self._execute(list(approved), policy or CleanPolicy(), cancel))

    def clean(
        self,
        approved: Sequence[ScanResult],
        policy: CleanPolicy | None = None,
        cancel: threading.Event | None = None,
        on_progress: Callable[[CleanProgress], None] | None = None,
    ) -> CleanResult:
        """Run a whole batch, forwarding each progress record to *on_progress*."""
        run = self.run(approved, policy, cancel)
        for progress in run:
            if on_progress:
                on_progress(progress)
        assert run.result is not None
        return run.result

    def _execute(
        self,
        approved: list[ScanResult],
        policy: CleanPolicy,
        cancel: threading.Event | None,
    ) -> Generator[CleanProgress, None, CleanResult]:
        start = time.monotonic()
        result = CleanResult()
        lock = threading.Lock()
        total = len(approved)

        try:
            if any(item.id not in policy.permanent for item in approved):
                self.store.open()

            for index, item in enumerate(approved, 1):
                if cancel is not None and cancel.is_set():
                    result.cancelled = True
                    break

                if item.safety is Safety.NEVER_AUTO and item.id not in policy.explicit:
                    result.warnings.append(f"Skipped '{item.name}': never removed without explicit selection")
                else:
                    self._clean_item(item, item.id in policy.permanent, result, lock, cancel)

                yield CleanProgress(
                    current=index,
                    total=total,
                    current_category=item.category.value,
                    files_removed=result.files_removed,
                    bytes_freed=result.bytes_freed,
                )
                if result.cancelled:
                    break
        except QuarantineStorageError as e:
            log.error("Aborting clean: %s", e)
            result.errors.append(f"Clean aborted: {e}")

        result.duration = time.monotonic() - start

        log.info(
            "Clean finished: %d files, %d bytes, %d errors%s",
            result.files_removed,
            result.bytes_freed,
            len(result.errors),
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def _clean_item(
        self,
        item: ScanResult,
        permanent: bool,
        result: CleanResult,
        lock: threading.Lock,
        cancel: threading.Event | None,
    ) -> None:
        paths = list(item.paths)
        if item.duplicate_group is not None:
            keeper = item.duplicate_group.keeper.path
            if keeper in paths:
                paths.remove(keeper)
                result.errors.append(f"{keeper}: refusing to remove the kept copy of a duplicate group")
        if not paths:
            result.warnings.append(f"Nothing to remove for '{item.name}'")
            return

        def _one(path: Path) -> None:
            if cancel is not None and cancel.is_set():
                with lock:
                    result.cancelled = True
                return
            try:
                ensure_removable(path, self.home)
                if permanent:
                    freed = _delete(path)
                    quarantined_id = None
                else:
                    qitem = self.store.quarantine(
                        path,
                        category=item.category.value,
                        metadata={"scan_result_id": item.id, "scan_result": item.name},
                    )
                    freed = qitem.size
                    quarantined_id = qitem.id
            except (ProtectedPathError, QuarantineMoveError) as e:
                log.warning("%s", e)
                with lock:
                    result.errors.append(str(e))
                return
            except FileNotFoundError:
                with lock:
                    result.errors.append(f"{path}: file vanished before removal")
                return
            except OSError as e:
                with lock:
                    result.errors.append(f"{path}: {e.strerror or e}")
                return

            with lock:
                result.files_removed += 1
                result.bytes_freed += freed
                if quarantined_id:
                    result.quarantined_ids.append(quarantined_id)

        if self.workers == 1 or len(paths) == 1:
            for path in paths:
                _one(path)
        else:
            with ThreadPoolExecutor(max_workers=min(self.workers, len(paths))) as executor:
                for future in [executor.submit(_one, p) for p in paths]:
                    future.result()


def _delete(path: Path) -> int:
    """Permanently remove one file and return the bytes freed."""
    size = os.lstat(path).st_size
    os.unlink(path)
    log.info("Permanently deleted %s", path)
    return size
