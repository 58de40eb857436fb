"""D-Bus service exposing the engine to desktop front ends.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "as" and "(ss)" are D-Bus protocol types, not Python syntax.
Payloads are JSON strings.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from pathlib import Path

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal
from dbus_next import BusType

from reclaim.core.engine import ReclaimEngine
from reclaim.core.orchestrator import CleanPolicy
from reclaim.models.clean_result import CleanProgress
from reclaim.models.scan_result import ThreatDetection
from reclaim.storage import load_history

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.reclaim.Engine"
_OBJECT_PATH = "/io/github/reclaim/Engine"
_INTERFACE = "io.github.reclaim.Engine"
_OPERATIONS = ("scan", "clean")


def _parse_threats(payload: str) -> list[ThreatDetection]:
    if not payload:
        return []
    return [
        ThreatDetection(
            path=Path(t["path"]),
            threat_type=t.get("threat_type", "unknown"),
            severity=t.get("severity", "unknown"),
            description=t.get("description", ""),
            recommended_action=t.get("recommended_action", ""),
        )
        for t in json.loads(payload)
    ]


# noinspection PyPep8Naming,DuplicatedCode
class ReclaimDBusService(ServiceInterface):
    """D-Bus service interface for the reclaim engine.

    Scans and cleans run on a worker thread so ``Cancel`` and other calls
    stay responsive; signals are emitted back on the event loop.
    """

    def __init__(self, engine: ReclaimEngine | None = None) -> None:
        super().__init__(_INTERFACE)
        self._engine = engine or ReclaimEngine.create()
        self._running: dict[str, set[threading.Event]] = {op: set() for op in _OPERATIONS}
        self._running_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._engine.progress.subscribe(self._on_clean_progress)

    def _emit(self, emitter, *args) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(emitter, *args)

    def _on_clean_progress(self, progress: CleanProgress) -> None:
        self._emit(self.CleanProgress, json.dumps(progress.to_dict()))

    async def _in_worker(self, operation: str, func):
        """Run *func(cancel)* on the executor with a cancel event of its own."""
        self._loop = asyncio.get_running_loop()
        cancel = threading.Event()
        with self._running_lock:
            self._running[operation].add(cancel)
        try:
            return await self._loop.run_in_executor(None, func, cancel)
        finally:
            with self._running_lock:
                self._running[operation].discard(cancel)

    def _cancel_running(self, operation: str = "") -> int:
        """Set the cancel event of every running *operation*, or of all of them."""
        if operation and operation not in self._running:
            log.warning("Cannot cancel unknown operation: %s", operation)
            return 0
        with self._running_lock:
            events = [
                event
                for op, running in self._running.items()
                if not operation or op == operation
                for event in running
            ]
        for event in events:
            event.set()
        return len(events)

    @method()
    async def ScanSystem(self, threats: "s") -> "s":  # type: ignore[override]
        """Scan every location, returning the report as JSON."""
        try:
            detections = _parse_threats(threats)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            return json.dumps({"error": f"Bad threats payload: {e}"})

        def progress(name: str, status: str) -> None:
            self._emit(self.ScanProgress, name, status)

        report = await self._in_worker(
            "scan", lambda cancel: self._engine.scan_system(detections, cancel, on_progress=progress)
        )
        return json.dumps(report.to_dict())

    @method()
    async def CleanFiles(self, result_ids: "as", permanent_ids: "as", explicit_ids: "as") -> "s":  # type: ignore[override]
        """Clean results from the last scan by id.

        ``permanent_ids`` are deleted instead of quarantined;
        ``explicit_ids`` marks results the user picked by hand.
        """
        approved = []
        missing = []
        for result_id in result_ids:
            result = self._engine.get_last_scan(result_id)
            if result is None:
                missing.append(result_id)
            else:
                approved.append(result)

        policy = CleanPolicy(permanent=frozenset(permanent_ids), explicit=frozenset(explicit_ids))
        result = await self._in_worker(
            "clean", lambda cancel: self._engine.clean_files(approved, policy, cancel)
        )
        data = result.to_dict()
        data["errors"].extend(f"Unknown scan result id: {rid}" for rid in missing)
        return json.dumps(data)

    @method()
    def ClassifyPaths(self, paths: "as") -> "s":  # type: ignore[override]
        """Build results for user-selected paths."""
        results = self._engine.classify_paths([Path(p) for p in paths])
        return json.dumps([r.to_dict() for r in results])

    @method()
    def Cancel(self, operation: "s"):  # type: ignore[override]
        """Cancel running scans or cleans; an empty *operation* cancels both."""
        self._cancel_running(operation)

    @method()
    def GetQuarantineItems(self) -> "s":  # type: ignore[override]
        return json.dumps([item.to_dict() for item in self._engine.get_quarantine_items()])

    @method()
    def RestoreQuarantineItem(self, item_id: "s") -> "b":  # type: ignore[override]
        return self._engine.restore_quarantine_item(item_id)

    @method()
    def ClearQuarantine(self, older_than_days: "d"):  # type: ignore[override]
        if older_than_days < 0:
            log.warning("Ignoring purge with negative age: %s", older_than_days)
            return
        self._engine.clear_quarantine(older_than_days)

    @method()
    def ProbeLocations(self) -> "s":  # type: ignore[override]
        return json.dumps([p.to_dict() for p in self._engine.probe_locations()])

    @method()
    def GetStats(self, period: "s") -> "s":  # type: ignore[override]
        """Get statistics for a time period."""
        return json.dumps(self._engine.audit.get_stats(period))

    @method()
    def GetHistory(self) -> "s":  # type: ignore[override]
        """Get the full event history."""
        return json.dumps(load_history())

    @signal()
    def ScanProgress(self, location: str, status: str) -> "(ss)":  # type: ignore[override]
        return [location, status]

    @signal()
    def CleanProgress(self, progress: str) -> "s":  # type: ignore[override]
        return progress


async def run_service() -> None:
    """Start the D-Bus service."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = ReclaimDBusService()
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s", _BUS_NAME)
    await bus.wait_for_disconnect()


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
