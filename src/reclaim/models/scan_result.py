"""Scan-side dataclasses: candidates, duplicate groups and results."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from reclaim.models.location import Category, Location, Safety


@dataclass(slots=True)
class Candidate:
    """One filesystem entry discovered during a scan, pre-classification."""

    path: Path
    size: int
    mtime: float
    location: Location
    atime: float | None = None


@dataclass(frozen=True, slots=True)
class DuplicateMember:
    path: Path
    size: int
    hash: str
    mtime: float


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """Files sharing one content hash.

    ``members`` is ordered keeper first; the keeper is never removable.
    """

    id: str
    members: tuple[DuplicateMember, ...]

    @property
    def keeper(self) -> DuplicateMember:
        return self.members[0]

    @property
    def removable(self) -> tuple[DuplicateMember, ...]:
        return self.members[1:]

    @property
    def total_size(self) -> int:
        return sum(m.size for m in self.members)

    @property
    def duplicate_count(self) -> int:
        return len(self.members) - 1

    @property
    def content_hash(self) -> str:
        return self.keeper.hash


@dataclass(frozen=True, slots=True)
class ThreatDetection:
    """Verdict from an external detector, passed through untouched."""

    path: Path
    threat_type: str
    severity: str
    description: str = ""
    recommended_action: str = ""


@dataclass(frozen=True, slots=True)
class ScanResult:
    """A user-facing, aggregated unit of reclaimable storage.

    ``paths`` lists exactly the files a clean of this result would remove;
    for duplicates that is every member except the keeper.
    """

    name: str
    category: Category
    total_size: int
    file_count: int
    path: Path
    description: str
    safety: Safety
    paths: tuple[Path, ...] = ()
    location_root: Path | None = None
    duplicate_group: DuplicateGroup | None = None
    threat: ThreatDetection | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    scan_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "total_size": self.total_size,
            "file_count": self.file_count,
            "path": str(self.path),
            "description": self.description,
            "safety": self.safety.value,
            "scan_time": self.scan_time.isoformat(),
            "paths": [str(p) for p in self.paths],
        }
        if self.duplicate_group is not None:
            data["keeper"] = str(self.duplicate_group.keeper.path)
        if self.threat is not None:
            data["threat"] = {
                "type": self.threat.threat_type,
                "severity": self.threat.severity,
                "recommended_action": self.threat.recommended_action,
            }
        return data


class Access(str, Enum):
    ACCESSIBLE = "accessible"
    DENIED = "denied"
    ABSENT = "absent"


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of a permission pre-flight check on one root."""

    path: Path
    access: Access
    entry_count: int = 0
    reason: str = ""

    @property
    def accessible(self) -> bool:
        return self.access is Access.ACCESSIBLE

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "access": self.access.value,
            "entry_count": self.entry_count,
            "reason": self.reason,
        }


@dataclass(slots=True)
class ScanReport:
    """Best-effort result of a full catalog scan."""

    results: list[ScanResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    probes: list[ProbeResult] = field(default_factory=list)
    duration: float = 0.0
    cancelled: bool = False

    @property
    def total_size(self) -> int:
        return sum(r.total_size for r in self.results)

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "total_size": self.total_size,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "probes": [p.to_dict() for p in self.probes],
            "duration": self.duration,
            "cancelled": self.cancelled,
        }
