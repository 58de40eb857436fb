"""Scan, classify and clean orchestration engine."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Sequence

from reclaim.core.audit import AuditTrail
from reclaim.core.catalog import LocationCatalog
from reclaim.core.classifier import Classifier
from reclaim.core.errors import AccessError, QuarantineStorageError, ReclaimError
from reclaim.core.hasher import ContentHasher
from reclaim.core.orchestrator import CleaningOrchestrator, CleanPolicy
from reclaim.core.probe import ensure_accessible, probe
from reclaim.core.progress import ProgressChannel
from reclaim.core.provider_loader import load_catalog
from reclaim.core.quarantine import QuarantineStore
from reclaim.core.scanner import ScanLimits, Scanner
from reclaim.models.clean_result import CleanResult
from reclaim.models.location import Location
from reclaim.models.quarantine_item import QuarantineItem
from reclaim.models.scan_result import Access, ProbeResult, ScanReport, ScanResult, ThreatDetection
from reclaim.settings import EngineConfig

log = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]  # (location_name, status_message)
ResultCallback = Callable[[ScanResult], None]


class ReclaimEngine:
    """Runs scans over the location catalog and cleans approved results.

    Boundary methods never raise for per-location or per-item failures;
    those end up in the warnings and errors of the returned report.
    """

    def __init__(
        self,
        catalog: LocationCatalog,
        config: EngineConfig | None = None,
        store: QuarantineStore | None = None,
        audit: AuditTrail | None = None,
        home: Path | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or EngineConfig()
        self.scanner = Scanner(
            ScanLimits(
                max_depth=self.config.max_depth,
                max_entries=self.config.max_entries,
                exclusions=tuple(self.config.exclusions),
            )
        )
        self.classifier = Classifier(
            ContentHasher(self.config.hash_min_size, self.config.hash_workers),
            self.config.large_file_floor,
            self.config.large_file_min_age_days,
        )
        self.store = store or QuarantineStore(self.config.quarantine_dir)
        self.orchestrator = CleaningOrchestrator(self.store, self.config.clean_workers, home)
        self.audit = audit or AuditTrail()
        self.progress = ProgressChannel()
        self._last_scan: dict[str, ScanResult] = {}
        self._last_scan_lock = threading.Lock()

    @classmethod
    def create(cls, config: EngineConfig | None = None) -> ReclaimEngine:
        """Build an engine over the locations the installed providers report."""
        config = config or EngineConfig.from_settings()
        catalog = LocationCatalog()
        load_catalog(catalog, config)
        return cls(catalog, config)

    def scan_system(
        self,
        threats: Iterable[ThreatDetection] = (),
        cancel: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
        on_result: ResultCallback | None = None,
    ) -> ScanReport:
        """Scan every catalog location and classify what was found.

        Uses a small thread pool so independent locations overlap.
        Falls back to sequential scanning for a single location or on
        single-core machines.

        Args:
            threats: Detections from an external detector, attached to
                matching candidates as their own results.
            cancel: Set to stop the scan; partial results are returned.
            on_progress: Optional callback for per-location status updates.
            on_result: Optional callback fired for each classified result.
        """
        start = time.monotonic()
        report = ScanReport()
        threats = list(threats)

        locations: list[Location] = []
        for location in self.catalog:
            result = probe(location.root)
            report.probes.append(result)
            if result.accessible:
                locations.append(location)
            elif result.access is Access.DENIED:
                report.warnings.append(f"{location.name}: {location.root} is not accessible ({result.reason})")
                if on_progress:
                    on_progress(location.name, "denied")
            else:
                log.debug("Skipping absent location: %s", location.root)

        per_location: list[list[ScanResult]] = [[] for _ in locations]
        lock = threading.Lock()

        def _scan_location(index: int, location: Location) -> None:
            if cancel is not None and cancel.is_set():
                return
            if on_progress:
                on_progress(location.name, "scanning")
            try:
                walk = self.scanner.walk(location, cancel)
                own_threats = [t for t in threats if location.contains(Path(t.path))]
                classification = self.classifier.classify(location, walk, own_threats, cancel)
            except Exception as e:
                log.exception("Location '%s' failed during scan", location.root)
                with lock:
                    report.errors.append(f"{location.name}: scan failed ({e})")
                if on_progress:
                    on_progress(location.name, "error")
                return

            with lock:
                per_location[index] = classification.results
                report.warnings.extend(str(w) for w in walk.stats.warnings)
                if walk.stats.inaccessible:
                    report.warnings.append(
                        f"{location.root}: {walk.stats.inaccessible} entries could not be read"
                    )
            if on_result:
                for item in classification.results:
                    on_result(item)
            if on_progress:
                on_progress(location.name, "done")

        if (os.cpu_count() or 1) > 1 and len(locations) > 1:
            max_workers = min(max(1, self.config.scan_workers), len(locations))
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = [executor.submit(_scan_location, i, loc) for i, loc in enumerate(locations)]
                for future in futures:
                    future.result()
        else:
            for i, loc in enumerate(locations):
                _scan_location(i, loc)

        report.results = [item for results in per_location for item in results]
        report.cancelled = cancel is not None and cancel.is_set()
        report.duration = time.monotonic() - start
        self._remember(report.results)

        log.info(
            "Scan finished: %d results, %d bytes reclaimable, %d warnings, %d errors",
            len(report.results),
            report.total_size,
            len(report.warnings),
            len(report.errors),
        )
        self._audit(self.audit.record_scan, report)
        return report

    def clean_files(
        self,
        approved: Sequence[ScanResult],
        policy: CleanPolicy | None = None,
        cancel: threading.Event | None = None,
    ) -> CleanResult:
        """Quarantine (or, where the policy says so, delete) approved results.

        Each progress record is published on ``progress`` in order.
        """
        approved = list(approved)
        try:
            result = self.orchestrator.clean(approved, policy, cancel, on_progress=self.progress.publish)
        except Exception as e:
            log.exception("Clean crashed")
            result = CleanResult(errors=[f"Clean crashed: {e}"])

        with self._last_scan_lock:
            for item in approved:
                self._last_scan.pop(item.id, None)
        self._audit(self.audit.record_clean, result, [item.category.value for item in approved])
        return result

    def get_last_scan(self, result_id: str) -> ScanResult | None:
        """Get a result from the most recent scan or classification by id."""
        with self._last_scan_lock:
            return self._last_scan.get(result_id)

    def get_quarantine_items(self, verify: bool = False) -> list[QuarantineItem]:
        try:
            listing = self.store.list_items(verify=verify)
        except QuarantineStorageError as e:
            log.error("Cannot list quarantine: %s", e)
            return []
        for warning in listing.warnings:
            log.warning("%s", warning)
        return listing.items

    def restore_quarantine_item(self, item_id: str) -> bool:
        """Restore one item; returns False and logs the reason on failure."""
        try:
            self.store.restore(item_id)
        except ReclaimError as e:
            log.warning("Restore of %s failed: %s", item_id, e)
            self._audit(self.audit.record_restore, item_id, False, str(e))
            return False
        self._audit(self.audit.record_restore, item_id, True)
        return True

    def clear_quarantine(self, older_than_days: float | None = None) -> None:
        """Purge entries older than *older_than_days* (retention default)."""
        days = self.config.retention_days if older_than_days is None else older_than_days
        try:
            purged = self.store.purge(days)
        except QuarantineStorageError as e:
            log.error("Cannot purge quarantine: %s", e)
            return
        self._audit(self.audit.record_purge, days, purged)

    def probe_locations(self) -> list[ProbeResult]:
        """Check read access to every catalog root without scanning."""
        return [probe(location.root) for location in self.catalog]

    def classify_paths(self, paths: Sequence[Path | str]) -> list[ScanResult]:
        """Build results for paths the user selected by hand.

        Paths that do not exist or cannot be read are logged and skipped.
        """
        selected: list[Path] = []
        for raw in paths:
            try:
                selected.append(ensure_accessible(raw).path)
            except AccessError as e:
                log.warning("Skipping selected path: %s", e)

        try:
            results = self.classifier.classify_paths(selected, self.catalog, self.scanner)
        except Exception:
            log.exception("Classifying selected paths failed")
            return []
        self._remember(results)
        return results

    def _remember(self, results: list[ScanResult]) -> None:
        with self._last_scan_lock:
            for item in results:
                self._last_scan[item.id] = item

    @staticmethod
    def _audit(record: Callable[..., None], *args: object) -> None:
        try:
            record(*args)
        except Exception:
            log.exception("Failed to write audit event")
