"""Scan locations on Linux and other XDG desktops."""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path

from reclaim.models.location import Category, Location, LocationProvider, Safety
from reclaim.utils import xdg_cache_home, xdg_config_home, xdg_data_home, xdg_state_home

log = logging.getLogger(__name__)


def _downloads_dir() -> Path:
    """Resolve the user's Downloads directory.

    Reads ``XDG_DOWNLOAD_DIR`` from ``user-dirs.dirs``, falls back to
    ``~/Downloads``.
    """
    dirs_file = xdg_config_home() / "user-dirs.dirs"
    if dirs_file.is_file():
        try:
            text = dirs_file.read_text()
        except OSError as e:
            log.debug("Could not read %s: %s", dirs_file, e)
        else:
            match = re.search(r'^XDG_DOWNLOAD_DIR="(.+)"', text, re.MULTILINE)
            if match:
                return Path(match.group(1).replace("$HOME", str(Path.home())))
    return Path.home() / "Downloads"


class LinuxProvider(LocationProvider):
    """User cache, temp, logs, trash and Downloads on Linux."""

    @property
    def id(self) -> str:
        return "linux"

    @property
    def platforms(self) -> tuple[str, ...]:
        return ("linux", "freebsd")

    def enumerate(self) -> list[Location]:
        platforms = self.platforms
        return [
            Location(
                root=xdg_cache_home(),
                name="User Cache",
                category=Category.CACHE,
                safety=Safety.AUTO_SAFE,
                description="Application caches in ~/.cache, regenerated on demand.",
                platforms=platforms,
            ),
            Location(
                root=Path(tempfile.gettempdir()),
                name="Temporary Files",
                category=Category.TEMP,
                description="Files in the system temp directory. Running programs may still use them.",
                platforms=platforms,
            ),
            Location(
                root=xdg_state_home(),
                name="Application Logs",
                category=Category.LOG,
                description="Log files applications keep in ~/.local/state.",
                platforms=platforms,
                include="*.log*",
            ),
            Location(
                root=Path("/var/log"),
                name="Rotated System Logs",
                category=Category.LOG,
                description="Compressed and numbered log rotations in /var/log.",
                platforms=platforms,
                include="*.[0-9]*",
            ),
            Location(
                root=xdg_data_home() / "Trash",
                name="Trash",
                category=Category.TRASH,
                description="Files already moved to the trash by the user.",
                platforms=platforms,
            ),
            Location(
                root=_downloads_dir(),
                name="Downloads",
                category=None,
                description="Downloaded files; only duplicates and large files are reported.",
                platforms=platforms,
                detect_duplicates=True,
                detect_large=True,
            ),
        ]
