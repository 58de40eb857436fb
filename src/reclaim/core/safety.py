"""Paths that must never be removed, whatever a scan or a user selects."""

from __future__ import annotations

import sys
from pathlib import Path

from reclaim.core.errors import ProtectedPathError

# Directory trees nothing under which may be removed.
_PROTECTED_TREES_POSIX = (
    "/bin",
    "/boot",
    "/etc",
    "/lib",
    "/lib64",
    "/sbin",
    "/usr/bin",
    "/usr/lib",
    "/usr/sbin",
    "/System",
    "/Library/System",
    "/.Snapshots",
)
_PROTECTED_TREES_WIN = (
    "C:\\Windows",
    "C:\\Program Files",
    "C:\\Program Files (x86)",
)
_PROTECTED_HOME_TREES = (
    "Documents",
    "Desktop",
    "Pictures",
    "Music",
    "Videos",
    "Movies",
    ".ssh",
    ".gnupg",
    "Library/Keychains",
    "Library/Mail",
    "Library/Messages",
)


def protected_trees(home: Path | None = None) -> list[Path]:
    home = home or Path.home()
    trees = [Path(p) for p in (_PROTECTED_TREES_WIN if sys.platform == "win32" else _PROTECTED_TREES_POSIX)]
    trees.extend(home / p for p in _PROTECTED_HOME_TREES)
    return trees


def _real(path: Path) -> Path:
    """Resolve the parent of *path* but keep its final component.

    A symlink is judged by where it lives, anything reached through a
    linked directory by where it really is.
    """
    path = Path(path).absolute()
    if not path.name:
        return path.resolve()
    return path.parent.resolve() / path.name


def is_protected(path: Path, home: Path | None = None) -> bool:
    """Whether *path* is a filesystem root, the home directory, or inside a protected tree."""
    home = (home or Path.home()).resolve()
    path = _real(path)
    if path == Path(path.anchor) or path == home:
        return True
    for tree in (t.resolve() for t in protected_trees(home)):
        if path == tree or tree in path.parents:
            return True
    return False


def ensure_removable(path: Path, home: Path | None = None) -> None:
    """Raise ProtectedPathError if *path* must not be removed."""
    if is_protected(path, home):
        raise ProtectedPathError(f"{path}: refusing to remove a protected path")
