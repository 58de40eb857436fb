"""Error taxonomy for scanning, classifying and quarantining."""

from __future__ import annotations


class ReclaimError(Exception):
    """Base class for all engine errors."""


class AccessError(ReclaimError):
    """A path could not be read. Recorded and skipped."""


class TraversalLimitReached(ReclaimError):
    """A depth or entry-count cap was hit. Reported as a warning."""


class HashReadError(ReclaimError):
    """A file vanished or became unreadable while hashing."""


class ProtectedPathError(ReclaimError):
    """A removal targeted a path that must never be touched."""


class QuarantineMoveError(ReclaimError):
    """A file could not be moved into quarantine. Fatal for that file only."""


class QuarantineStorageError(ReclaimError):
    """The quarantine store itself is unusable. Aborts a whole clean."""


class RestoreError(ReclaimError):
    """A quarantined file could not be restored."""


class QuarantineNotFoundError(RestoreError):
    """No quarantine record exists for the given id."""


class RestoreConflictError(RestoreError):
    """The original path is occupied or the stored checksum no longer matches."""


class CorruptionDetected(ReclaimError):
    """Quarantine metadata and stored files disagree."""
