"""Persistent trail of scan, clean, restore and purge operations."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

from reclaim.models.clean_result import CleanResult
from reclaim.models.scan_result import ScanReport
from reclaim.storage import load_history, save_history

log = logging.getLogger(__name__)

EVENT_KINDS = ("scan", "clean", "restore", "purge")


class AuditTrail:
    """Appends operation events to the history file and aggregates them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def record_scan(self, report: ScanReport) -> None:
        self._append(
            "scan",
            {
                "results": len(report.results),
                "total_size": report.total_size,
                "warnings": len(report.warnings),
                "errors": len(report.errors),
                "cancelled": report.cancelled,
            },
        )

    def record_clean(self, result: CleanResult, categories: list[str] | None = None) -> None:
        self._append(
            "clean",
            {
                "files_removed": result.files_removed,
                "bytes_freed": result.bytes_freed,
                "errors": len(result.errors),
                "quarantined": len(result.quarantined_ids),
                "categories": sorted(set(categories or [])),
                "cancelled": result.cancelled,
            },
        )

    def record_restore(self, item_id: str, success: bool, reason: str = "") -> None:
        details: dict[str, Any] = {"item_id": item_id, "success": success}
        if reason:
            details["reason"] = reason
        self._append("restore", details)

    def record_purge(self, older_than_days: float, purged: int) -> None:
        self._append("purge", {"older_than_days": older_than_days, "purged": purged})

    def events(self, kind: str | None = None) -> list[dict[str, Any]]:
        """Return recorded events, oldest first, optionally of one kind."""
        events = load_history().get("events", [])
        if kind is not None:
            events = [e for e in events if e.get("kind") == kind]
        return events

    def get_last_clean_time(self) -> str | None:
        """Return ISO timestamp of the most recent clean, or None."""
        cleans = self.events("clean")
        return cleans[-1]["timestamp"] if cleans else None

    def get_stats(self, period: str = "all") -> dict[str, Any]:
        """Get aggregated statistics for a time period.

        Args:
            period: One of 'today', 'week', 'month', 'all'.
        """
        all_events = self.events()

        match period:
            case "today":
                cutoff = _start_of_today()
            case "week":
                cutoff = _start_of_today() - timedelta(days=7)
            case "month":
                cutoff = _start_of_today() - timedelta(days=30)
            case _:
                cutoff = None

        if cutoff is not None:
            events = [e for e in all_events if datetime.fromisoformat(e["timestamp"]) >= cutoff]
        else:
            events = all_events

        cleans = [e for e in events if e.get("kind") == "clean"]
        counts = {kind: 0 for kind in EVENT_KINDS}
        for event in events:
            kind = event.get("kind")
            if kind in counts:
                counts[kind] += 1

        return {
            "period": period,
            "bytes_freed": sum(_detail(e, "bytes_freed") for e in cleans),
            "files_removed": sum(_detail(e, "files_removed") for e in cleans),
            "restored": sum(1 for e in events if e.get("kind") == "restore" and e["details"].get("success")),
            "purged": sum(_detail(e, "purged") for e in events if e.get("kind") == "purge"),
            "event_counts": counts,
            "lifetime_bytes_freed": sum(_detail(e, "bytes_freed") for e in all_events if e.get("kind") == "clean"),
        }

    def _append(self, kind: str, details: dict[str, Any]) -> None:
        with self._lock:
            history = load_history()
            history["events"].append(
                {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "kind": kind,
                    "details": details,
                }
            )
            save_history(history)
        log.debug("Recorded %s event", kind)


def _detail(event: dict[str, Any], key: str) -> int:
    return int(event.get("details", {}).get(key, 0))


def _start_of_today() -> datetime:
    """Return the start of the current UTC day."""
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
