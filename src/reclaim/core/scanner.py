"""Bounded, streaming filesystem walks over scan locations."""

from __future__ import annotations

import fnmatch
import logging
import os
import stat
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from reclaim.core.errors import TraversalLimitReached
from reclaim.models.location import Location
from reclaim.models.scan_result import Candidate

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScanLimits:
    max_depth: int = 32
    max_entries: int = 50_000
    exclusions: tuple[str, ...] = ()


@dataclass(slots=True)
class WalkStats:
    """Counters for one pass over a location."""

    entries: int = 0
    files: int = 0
    inaccessible: int = 0
    depth_limited: bool = False
    entry_limited: bool = False
    cancelled: bool = False
    warnings: list[TraversalLimitReached] = field(default_factory=list)


class LocationWalk:
    """Lazy, restartable sequence of candidates under one location.

    Every ``iter()`` starts a fresh walk and resets ``stats``. Directory
    listings are streamed, so memory stays bounded by the directory stack
    rather than by the size of the tree.
    """

    def __init__(
        self,
        location: Location,
        limits: ScanLimits,
        cancel: threading.Event | None = None,
    ) -> None:
        self.location = location
        self.limits = limits
        self.cancel = cancel
        self.stats = WalkStats()

    def __iter__(self) -> Iterator[Candidate]:
        self.stats = WalkStats()
        return self._walk(self.stats)

    def _excluded(self, path: str, name: str) -> bool:
        return any(fnmatch.fnmatch(path, pat) or fnmatch.fnmatch(name, pat) for pat in self.limits.exclusions)

    def _included(self, name: str) -> bool:
        return self.location.include is None or fnmatch.fnmatch(name, self.location.include)

    def _limit(self, stats: WalkStats, message: str) -> None:
        log.info("%s: %s", self.location.root, message)
        stats.warnings.append(TraversalLimitReached(f"{self.location.root}: {message}"))

    def _walk(self, stats: WalkStats) -> Iterator[Candidate]:
        root = self.location.root
        try:
            root_st = root.stat()
        except OSError:
            log.debug("Cannot stat location root: %s", root)
            stats.inaccessible += 1
            return

        if stat.S_ISREG(root_st.st_mode):
            stats.entries = stats.files = 1
            if self._included(root.name):
                yield self._candidate(root, root_st)
            return

        root_real = os.path.realpath(root)
        visited: set[tuple[int, int]] = {(root_st.st_dev, root_st.st_ino)}
        stack: list[tuple[str, int]] = [(str(root), 0)]

        while stack:
            current, depth = stack.pop()
            try:
                with os.scandir(current) as it:
                    for entry in it:
                        if self.cancel is not None and self.cancel.is_set():
                            stats.cancelled = True
                            return
                        if stats.entries >= self.limits.max_entries:
                            stats.entry_limited = True
                            self._limit(stats, f"stopped after {self.limits.max_entries} entries")
                            return
                        stats.entries += 1

                        if self._excluded(entry.path, entry.name):
                            continue
                        try:
                            if entry.is_symlink():
                                target_st = self._follow_link(entry, root_real)
                                if target_st is not None:
                                    self._push(entry.path, target_st, depth, visited, stack, stats)
                                continue
                            if entry.is_dir(follow_symlinks=False):
                                self._push(entry.path, entry.stat(follow_symlinks=False), depth, visited, stack, stats)
                                continue
                            if not entry.is_file(follow_symlinks=False):
                                continue
                            st = entry.stat(follow_symlinks=False)
                        except OSError:
                            log.debug("Cannot stat: %s", entry.path)
                            stats.inaccessible += 1
                            continue

                        stats.files += 1
                        if self._included(entry.name):
                            yield self._candidate(Path(entry.path), st)
            except OSError:
                log.debug("Cannot list directory: %s", current)
                stats.inaccessible += 1

    def _follow_link(self, entry: os.DirEntry, root_real: str) -> os.stat_result | None:
        """Return the target's stat if a directory symlink stays inside the root.

        Symlinked files are never candidates: removing the link frees
        nothing and removing the target would act outside the location.
        """
        if not entry.is_dir(follow_symlinks=True):
            return None
        target = os.path.realpath(entry.path)
        if os.path.commonpath([root_real, target]) != root_real:
            log.debug("Not following symlink out of %s: %s -> %s", self.location.root, entry.path, target)
            return None
        return os.stat(target)

    def _push(
        self,
        path: str,
        st: os.stat_result,
        depth: int,
        visited: set[tuple[int, int]],
        stack: list[tuple[str, int]],
        stats: WalkStats,
    ) -> None:
        if depth + 1 > self.limits.max_depth:
            if not stats.depth_limited:
                stats.depth_limited = True
                self._limit(stats, f"not descending below depth {self.limits.max_depth}")
            return
        key = (st.st_dev, st.st_ino)
        if key in visited:
            return
        visited.add(key)
        stack.append((path, depth + 1))

    def _candidate(self, path: Path, st: os.stat_result) -> Candidate:
        return Candidate(
            path=path,
            size=st.st_size,
            mtime=st.st_mtime,
            atime=st.st_atime,
            location=self.location,
        )


class Scanner:
    """Produces candidate walks for locations under shared limits."""

    def __init__(self, limits: ScanLimits | None = None) -> None:
        self.limits = limits or ScanLimits()

    def walk(self, location: Location, cancel: threading.Event | None = None) -> LocationWalk:
        return LocationWalk(location, self.limits, cancel)
