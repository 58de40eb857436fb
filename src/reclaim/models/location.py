"""Scan locations and the provider interface that supplies them."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Category(str, Enum):
    """Kind of reclaimable storage a ScanResult represents."""

    CACHE = "cache"
    TEMP = "temp"
    LOG = "log"
    DUPLICATE = "duplicate"
    LARGE = "large"
    TRASH = "trash"


class Safety(str, Enum):
    """Safety verdict, ordered from most to least permissive."""

    AUTO_SAFE = "auto-safe"
    NEEDS_CONFIRMATION = "needs-confirmation"
    NEVER_AUTO = "never-auto"

    @property
    def rank(self) -> int:
        return _SAFETY_ORDER.index(self)

    def stricter(self, other: Safety) -> Safety:
        """Return whichever of the two verdicts is more restrictive."""
        return self if self.rank >= other.rank else other


_SAFETY_ORDER = (Safety.AUTO_SAFE, Safety.NEEDS_CONFIRMATION, Safety.NEVER_AUTO)

ALL_PLATFORMS = ("linux", "darwin", "win32")


@dataclass(frozen=True)
class Location:
    """A configured filesystem root considered for scanning.

    ``category`` is None for user-file locations (e.g. Downloads), which
    only surface duplicates and large files, never a bulk bucket.
    """

    root: Path
    name: str
    category: Category | None
    safety: Safety = Safety.NEEDS_CONFIRMATION
    description: str = ""
    platforms: tuple[str, ...] = ALL_PLATFORMS
    detect_duplicates: bool = False
    detect_large: bool = False
    include: str | None = None
    """Optional filename glob; only matching files become candidates."""

    def applies_to(self, platform: str = sys.platform) -> bool:
        return any(platform.startswith(p) for p in self.platforms)

    def contains(self, path: Path) -> bool:
        """Whether *path* lies inside this location's root."""
        try:
            path.relative_to(self.root)
        except ValueError:
            return False
        return True

    @classmethod
    def from_dict(cls, data: dict) -> Location:
        """Build a location from a settings entry."""
        category = data.get("category")
        return cls(
            root=Path(data["root"]).expanduser(),
            name=data.get("name") or data["root"],
            category=Category(category) if category else None,
            safety=Safety(data.get("safety", Safety.NEEDS_CONFIRMATION.value)),
            description=data.get("description", ""),
            detect_duplicates=bool(data.get("detect_duplicates", category is None)),
            detect_large=bool(data.get("detect_large", category is None)),
            include=data.get("include"),
        )


class LocationProvider(ABC):
    """Supplies the candidate locations for one platform family.

    Providers are discovered at startup and selected by platform, so each
    OS contributes its own list without the engine inspecting types.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier, e.g. 'linux'."""

    @property
    @abstractmethod
    def platforms(self) -> tuple[str, ...]:
        """``sys.platform`` prefixes this provider supports."""

    @abstractmethod
    def enumerate(self) -> list[Location]:
        """Return the locations this provider knows about."""

    def supports(self, platform: str = sys.platform) -> bool:
        return any(platform.startswith(p) for p in self.platforms)
