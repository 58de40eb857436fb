"""Cleaning result and progress dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class CleanResult:
    """Result of a cleaning operation."""

    files_removed: int = 0
    bytes_freed: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration: float = 0.0
    cancelled: bool = False
    quarantined_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "files_removed": self.files_removed,
            "bytes_freed": self.bytes_freed,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "duration": self.duration,
            "cancelled": self.cancelled,
            "quarantined_ids": list(self.quarantined_ids),
        }


@dataclass(frozen=True, slots=True)
class CleanProgress:
    """Progress record emitted after each processed ScanResult."""

    current: int
    total: int
    current_category: str
    files_removed: int
    bytes_freed: int

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "total": self.total,
            "current_category": self.current_category,
            "files_removed": self.files_removed,
            "bytes_freed": self.bytes_freed,
        }
