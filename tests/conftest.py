"""Shared test fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

import reclaim.storage as storage
from reclaim.models.location import Category, Location, Safety


@pytest.fixture
def isolate_storage(tmp_path, monkeypatch):
    """Redirect storage to a temp directory."""
    data_dir = tmp_path / "reclaim_data"
    data_dir.mkdir()
    history_file = data_dir / "history.json"
    monkeypatch.setattr(storage, "HISTORY_FILE", history_file)
    monkeypatch.setattr(storage, "_DATA_DIR", data_dir)
    return history_file


@pytest.fixture
def xdg_dirs(tmp_path, monkeypatch):
    """Point every XDG base directory into the temp dir."""
    dirs = {}
    for var, name in (
        ("XDG_CACHE_HOME", "cache"),
        ("XDG_CONFIG_HOME", "config"),
        ("XDG_DATA_HOME", "data"),
        ("XDG_STATE_HOME", "state"),
    ):
        path = tmp_path / "xdg" / name
        path.mkdir(parents=True)
        monkeypatch.setenv(var, str(path))
        dirs[name] = path
    return dirs


def make_file(path: Path, content: bytes | str = b"x", mtime: float | None = None) -> Path:
    """Create a file with given content and optional mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode()
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def make_location(
    root: Path,
    category: Category | None = Category.CACHE,
    safety: Safety = Safety.AUTO_SAFE,
    **kwargs,
) -> Location:
    return Location(root=root, name=kwargs.pop("name", root.name), category=category, safety=safety, **kwargs)
