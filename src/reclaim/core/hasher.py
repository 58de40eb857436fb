"""Streaming content fingerprints for duplicate detection and quarantine."""

from __future__ import annotations

import hashlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable

from reclaim.core.errors import HashReadError

log = logging.getLogger(__name__)

_CHUNK_SIZE = 65_536  # 64 KB

DEFAULT_MIN_SIZE = 4096


def hash_file(path: Path | str, chunk_size: int = _CHUNK_SIZE) -> str:
    """Compute SHA-256 of a file using chunked reads.

    Raises:
        HashReadError: The file could not be opened or read to the end.
    """
    h = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            while chunk := f.read(chunk_size):
                h.update(chunk)
    except OSError as e:
        raise HashReadError(f"{path}: {e}") from e
    return h.hexdigest()


class ContentHasher:
    """Hashes files for dedup, skipping ones too small to be worth it."""

    def __init__(self, min_size: int = DEFAULT_MIN_SIZE, workers: int = 4) -> None:
        self.min_size = min_size
        self.workers = max(1, workers)

    def eligible(self, size: int) -> bool:
        return size >= self.min_size

    def hash_files(
        self,
        paths: Iterable[Path],
        cancel: threading.Event | None = None,
    ) -> dict[Path, str]:
        """Hash distinct files, in parallel across files.

        Files that fail to hash are left out of the returned mapping.
        Cancellation is honoured before each file starts, never mid-file.
        """
        unique = list(dict.fromkeys(paths))
        if not unique:
            return {}

        def _one(path: Path) -> tuple[Path, str | None]:
            if cancel is not None and cancel.is_set():
                return path, None
            try:
                return path, hash_file(path)
            except HashReadError as e:
                log.debug("Dropping from dedup: %s", e)
                return path, None

        if self.workers == 1 or len(unique) == 1:
            pairs = [_one(p) for p in unique]
        else:
            with ThreadPoolExecutor(max_workers=min(self.workers, len(unique))) as executor:
                pairs = list(executor.map(_one, unique))

        return {path: digest for path, digest in pairs if digest is not None}
