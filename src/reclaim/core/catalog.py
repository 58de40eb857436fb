"""Central catalog of scan locations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from reclaim.models.location import Location

log = logging.getLogger(__name__)


class LocationCatalog:
    """Stores and retrieves the locations a system scan covers."""

    def __init__(self) -> None:
        self._locations: dict[Path, Location] = {}

    def register(self, location: Location) -> None:
        """Register a location; a second one with the same root is skipped."""
        if location.root in self._locations:
            log.warning("Location '%s' already registered, skipping duplicate", location.root)
            return
        self._locations[location.root] = location
        log.debug("Registered location: %s (%s)", location.root, location.name)

    def owner_of(self, path: Path) -> Location | None:
        """Return the most specific location whose root contains *path*."""
        owners = [loc for loc in self._locations.values() if loc.contains(Path(path))]
        if not owners:
            return None
        return max(owners, key=lambda loc: len(loc.root.parts))

    def __len__(self) -> int:
        return len(self._locations)

    def __iter__(self) -> Iterator[Location]:
        return iter(self._locations.values())

    def __contains__(self, root: object) -> bool:
        return isinstance(root, (str, Path)) and Path(root) in self._locations
