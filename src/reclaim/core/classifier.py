"""Turns scanned candidates into categorised, safety-rated ScanResults."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Sequence

from reclaim.core.catalog import LocationCatalog
from reclaim.core.hasher import ContentHasher
from reclaim.core.scanner import Scanner
from reclaim.models.location import Category, Location, Safety
from reclaim.models.scan_result import (
    Candidate,
    DuplicateGroup,
    DuplicateMember,
    ScanResult,
    ThreatDetection,
)
from reclaim.utils import bytes_to_human

log = logging.getLogger(__name__)

DEFAULT_LARGE_FILE_FLOOR = 100 * 1024 * 1024
DEFAULT_LARGE_FILE_MIN_AGE_DAYS = 90

_DAY = 24 * 60 * 60

# Recommended action that keeps a flagged file eligible for quarantine.
_QUARANTINE_ACTION = "quarantine"


@dataclass(slots=True)
class Classification:
    """Everything classification produced for one location."""

    results: list[ScanResult] = field(default_factory=list)
    duplicate_groups: list[DuplicateGroup] = field(default_factory=list)


def keeper_key(member: DuplicateMember) -> tuple[float, int, str]:
    """Sort key picking the keeper: newest mtime, then longest path."""
    path = str(member.path)
    return member.mtime, len(path), path


def group_duplicates(members: Iterable[DuplicateMember]) -> list[DuplicateGroup]:
    """Group hashed members by content hash, keeper first in each group."""
    by_hash: dict[str, list[DuplicateMember]] = {}
    for member in members:
        by_hash.setdefault(member.hash, []).append(member)

    groups: list[DuplicateGroup] = []
    for digest, same in by_hash.items():
        if len(same) < 2:
            continue
        same.sort(key=keeper_key, reverse=True)
        groups.append(DuplicateGroup(id=digest[:12], members=tuple(same)))
    groups.sort(key=lambda g: g.id)
    return groups


class Classifier:
    """Assigns categories and safety verdicts to one location's candidates."""

    def __init__(
        self,
        hasher: ContentHasher | None = None,
        large_file_floor: int = DEFAULT_LARGE_FILE_FLOOR,
        large_file_min_age_days: float = DEFAULT_LARGE_FILE_MIN_AGE_DAYS,
    ) -> None:
        self.hasher = hasher or ContentHasher()
        self.large_file_floor = large_file_floor
        self.large_file_min_age_days = large_file_min_age_days

    def classify(
        self,
        location: Location,
        candidates: Iterable[Candidate],
        threats: Iterable[ThreatDetection] = (),
        cancel: threading.Event | None = None,
    ) -> Classification:
        """Classify every candidate of *location*.

        Candidates end up in at most one result: a threat row, a duplicate
        group, a large-file row, or the location's aggregate bucket.
        """
        outcome = Classification()
        pending = list(candidates)
        threat_by_path = {Path(t.path): t for t in threats}

        remaining: list[Candidate] = []
        for cand in pending:
            threat = threat_by_path.get(cand.path)
            if threat is not None:
                outcome.results.append(self._threat_result(location, cand, threat))
            else:
                remaining.append(cand)

        grouped: set[Path] = set()
        if location.detect_duplicates:
            groups = self._find_duplicates(remaining, cancel)
            outcome.duplicate_groups.extend(groups)
            for group in groups:
                grouped.update(m.path for m in group.members)
                outcome.results.append(self._duplicate_result(location, group))

        large: set[Path] = set()
        if location.detect_large:
            now = time.time()
            for cand in remaining:
                if cand.path in grouped or cand.size < self.large_file_floor:
                    continue
                age_days = (now - cand.mtime) / _DAY
                if age_days < self.large_file_min_age_days:
                    continue
                large.add(cand.path)
                outcome.results.append(self._large_result(location, cand, int(age_days)))

        if location.category is not None:
            bucket = [c for c in remaining if c.path not in grouped and c.path not in large]
            if bucket:
                outcome.results.append(self._bucket_result(location, location.category, bucket))

        return outcome

    def classify_paths(self, paths: Sequence[Path], catalog: LocationCatalog, scanner: Scanner) -> list[ScanResult]:
        """Rate paths the user picked by hand.

        A path inside a known location inherits that location's verdict;
        anything else is ``never-auto`` and only removable by this explicit
        selection. Selections are followed to where they really point, so a
        link into a protected tree is judged as that tree.
        """
        results: list[ScanResult] = []
        for raw in paths:
            path = Path(raw).expanduser().resolve()
            owner = catalog.owner_of(path)
            safety = owner.safety if owner is not None else Safety.NEVER_AUTO
            category = (owner.category if owner is not None else None) or Category.LARGE

            adhoc = Location(root=path, name=path.name, category=category, safety=safety)
            bucket = list(scanner.walk(adhoc))
            if not bucket:
                log.info("Nothing removable at selected path: %s", path)
                continue
            result = self._bucket_result(adhoc, category, bucket)
            if owner is None:
                result = replace(result, description=f"Selected outside known locations: {path}")
            results.append(result)
        return results

    def _find_duplicates(self, candidates: list[Candidate], cancel: threading.Event | None) -> list[DuplicateGroup]:
        by_size: dict[int, list[Candidate]] = {}
        for cand in candidates:
            if self.hasher.eligible(cand.size):
                by_size.setdefault(cand.size, []).append(cand)

        # Only files sharing a size can share content.
        to_hash = [c for same in by_size.values() if len(same) > 1 for c in same]
        digests = self.hasher.hash_files((c.path for c in to_hash), cancel)

        members = [
            DuplicateMember(path=c.path, size=c.size, hash=digests[c.path], mtime=c.mtime)
            for c in to_hash
            if c.path in digests
        ]
        return group_duplicates(members)

    @staticmethod
    def _bucket_result(location: Location, category: Category, bucket: list[Candidate]) -> ScanResult:
        total = sum(c.size for c in bucket)
        paths = tuple(sorted(c.path for c in bucket))
        description = location.description or f"{len(bucket):,} files in {location.root}"
        return ScanResult(
            name=location.name,
            category=category,
            total_size=total,
            file_count=len(bucket),
            path=location.root,
            description=description,
            safety=location.safety,
            paths=paths,
            location_root=location.root,
        )

    @staticmethod
    def _duplicate_result(location: Location, group: DuplicateGroup) -> ScanResult:
        removable = group.removable
        keeper = group.keeper
        return ScanResult(
            name=f"Duplicates of {keeper.path.name}",
            category=Category.DUPLICATE,
            total_size=sum(m.size for m in removable),
            file_count=len(removable),
            path=removable[0].path,
            description=f"{group.duplicate_count} identical copies; keeping {keeper.path}",
            safety=location.safety,
            paths=tuple(m.path for m in removable),
            location_root=location.root,
            duplicate_group=group,
        )

    @staticmethod
    def _large_result(location: Location, cand: Candidate, age_days: int) -> ScanResult:
        return ScanResult(
            name=cand.path.name,
            category=Category.LARGE,
            total_size=cand.size,
            file_count=1,
            path=cand.path,
            description=f"Large file ({bytes_to_human(cand.size)}) in {location.name}, not modified in {age_days} days",
            safety=location.safety.stricter(Safety.NEEDS_CONFIRMATION),
            paths=(cand.path,),
            location_root=location.root,
        )

    @staticmethod
    def _threat_result(location: Location, cand: Candidate, threat: ThreatDetection) -> ScanResult:
        if threat.recommended_action == _QUARANTINE_ACTION:
            safety = location.safety.stricter(Safety.NEEDS_CONFIRMATION)
        else:
            safety = Safety.NEVER_AUTO
        description = f"Flagged as {threat.threat_type} ({threat.severity})"
        if threat.description:
            description = f"{description}: {threat.description}"
        return ScanResult(
            name=cand.path.name,
            category=location.category or Category.LARGE,
            total_size=cand.size,
            file_count=1,
            path=cand.path,
            description=description,
            safety=safety,
            paths=(cand.path,),
            location_root=location.root,
            threat=threat,
        )

