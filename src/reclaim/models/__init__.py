"""Reclaim data models."""

from reclaim.models.location import Category, Location, LocationProvider, Safety
from reclaim.models.scan_result import (
    Access,
    Candidate,
    DuplicateGroup,
    DuplicateMember,
    ProbeResult,
    ScanReport,
    ScanResult,
    ThreatDetection,
)
from reclaim.models.clean_result import CleanProgress, CleanResult
from reclaim.models.quarantine_item import QuarantineItem

__all__ = [
    "Access",
    "Candidate",
    "Category",
    "CleanProgress",
    "CleanResult",
    "DuplicateGroup",
    "DuplicateMember",
    "Location",
    "LocationProvider",
    "ProbeResult",
    "QuarantineItem",
    "Safety",
    "ScanReport",
    "ScanResult",
    "ThreatDetection",
]
