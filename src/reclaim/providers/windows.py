"""Scan locations on Windows."""

from __future__ import annotations

import os
from pathlib import Path

from reclaim.models.location import Category, Location, LocationProvider, Safety


class WindowsProvider(LocationProvider):
    """Temp, crash dumps, web cache and Downloads on Windows."""

    @property
    def id(self) -> str:
        return "windows"

    @property
    def platforms(self) -> tuple[str, ...]:
        return ("win32", "cygwin")

    def enumerate(self) -> list[Location]:
        home = Path.home()
        local = Path(os.environ.get("LOCALAPPDATA", home / "AppData" / "Local"))
        return [
            Location(
                root=Path(os.environ.get("TEMP", local / "Temp")),
                name="Temporary Files",
                category=Category.TEMP,
                safety=Safety.AUTO_SAFE,
                description="The per-user temporary directory.",
                platforms=self.platforms,
            ),
            Location(
                root=local / "CrashDumps",
                name="Crash Dumps",
                category=Category.LOG,
                description="Memory dumps left by crashed applications.",
                platforms=self.platforms,
            ),
            Location(
                root=local / "Microsoft" / "Windows" / "INetCache",
                name="Internet Cache",
                category=Category.CACHE,
                safety=Safety.AUTO_SAFE,
                description="Cached web content used by system components.",
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
