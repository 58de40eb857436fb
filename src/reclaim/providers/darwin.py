"""Scan locations on macOS."""

from __future__ import annotations

import os
from pathlib import Path

from reclaim.models.location import Category, Location, LocationProvider, Safety


class DarwinProvider(LocationProvider):
    """Library caches, logs, trash and Downloads on macOS."""

    @property
    def id(self) -> str:
        return "darwin"

    @property
    def platforms(self) -> tuple[str, ...]:
        return ("darwin",)

    def enumerate(self) -> list[Location]:
        home = Path.home()
        library = home / "Library"
        return [
            Location(
                root=library / "Caches",
                name="User Cache",
                category=Category.CACHE,
                safety=Safety.AUTO_SAFE,
                description="Application caches in ~/Library/Caches.",
                platforms=self.platforms,
            ),
            Location(
                root=library / "Logs",
                name="Application Logs",
                category=Category.LOG,
                description="Logs and diagnostic reports in ~/Library/Logs.",
                platforms=self.platforms,
            ),
            Location(
                root=Path(os.environ.get("TMPDIR", "/tmp")),
                name="Temporary Files",
                category=Category.TEMP,
                description="The per-user temporary directory.",
                platforms=self.platforms,
            ),
            Location(
                root=home / ".Trash",
                name="Trash",
                category=Category.TRASH,
                description="Files already moved to the trash by the user.",
                platforms=self.platforms,
            ),
            Location(
                root=home / "Downloads",
                name="Downloads",
                category=None,
                description="Downloaded files; only duplicates and large files are reported.",
                platforms=self.platforms,
                detect_duplicates=True,
                detect_large=True,
            ),
        ]
