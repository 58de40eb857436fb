"""Permission pre-flight checks for scan roots."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from reclaim.core.errors import AccessError
from reclaim.models.scan_result import Access, ProbeResult

log = logging.getLogger(__name__)

# Entries sampled by estimate(); diagnostics only.
_SAMPLE_SIZE = 100


def probe(path: Path | str) -> ProbeResult:
    """Report whether *path* can be scanned.

    Missing and unreadable roots are normal outcomes, so this never raises
    for them.
    """
    path = Path(path)
    try:
        st = path.stat()
    except FileNotFoundError:
        return ProbeResult(path=path, access=Access.ABSENT)
    except NotADirectoryError:
        return ProbeResult(path=path, access=Access.ABSENT, reason="parent is not a directory")
    except OSError as e:
        return ProbeResult(path=path, access=Access.DENIED, reason=e.strerror or str(e))

    if not path.is_dir():
        if os.access(path, os.R_OK):
            return ProbeResult(path=path, access=Access.ACCESSIBLE, entry_count=1)
        return ProbeResult(path=path, access=Access.DENIED, reason="file is not readable")

    try:
        with os.scandir(path) as it:
            count = sum(1 for _ in it)
    except OSError as e:
        return ProbeResult(path=path, access=Access.DENIED, reason=e.strerror or str(e))

    log.debug("Probed %s: %d entries (mode %o)", path, count, st.st_mode & 0o777)
    return ProbeResult(path=path, access=Access.ACCESSIBLE, entry_count=count)


def estimate(path: Path | str, sample: int = _SAMPLE_SIZE) -> tuple[int, int]:
    """Approximate (total_bytes, file_count) from the first *sample* entries.

    Only the top level is sampled and nothing is recursed into, so the
    result is a quick lower bound for diagnostics, never a ScanResult total.
    """
    total = 0
    count = 0
    try:
        with os.scandir(path) as it:
            for index, entry in enumerate(it):
                if index >= sample:
                    break
                try:
                    if entry.is_file(follow_symlinks=False):
                        total += entry.stat(follow_symlinks=False).st_size
                        count += 1
                except OSError:
                    continue
    except OSError:
        log.debug("Cannot sample %s", path)
    return total, count


def ensure_accessible(path: Path | str) -> ProbeResult:
    """Probe *path* and raise AccessError unless it can be scanned."""
    result = probe(path)
    if result.access is Access.DENIED:
        raise AccessError(f"{result.path}: permission denied ({result.reason})")
    if result.access is Access.ABSENT:
        raise AccessError(f"{result.path}: does not exist")
    return result
