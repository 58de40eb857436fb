"""JSON-backed settings store and the engine configuration derived from it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from reclaim.utils import xdg_config_home, xdg_data_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "reclaim"
_SETTINGS_FILE = "settings.json"


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("scan.max_depth")  # reads data["scan"]["max_depth"]
        settings.set("quarantine.retention_days", 14)  # writes + saves
    """

    _instance: Settings | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @classmethod
    def instance(cls) -> Settings:
        """Return the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            self._data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            self._data = {}

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


def default_quarantine_dir() -> Path:
    return xdg_data_home() / "reclaim" / "quarantine"


@dataclass(slots=True)
class EngineConfig:
    """Tunables for one engine instance.

    Defaults apply when a key is missing from the settings file.
    """

    max_depth: int = 32
    max_entries: int = 50_000
    scan_workers: int = 4
    hash_min_size: int = 4096
    hash_workers: int = 4
    large_file_floor: int = 100 * 1024 * 1024
    large_file_min_age_days: int = 90
    quarantine_dir: Path = field(default_factory=default_quarantine_dir)
    retention_days: int = 30
    clean_workers: int = 1
    exclusions: list[str] = field(default_factory=list)
    extra_locations: list[dict[str, Any]] = field(default_factory=list)
    provider_paths: list[Path] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> EngineConfig:
        s = settings or Settings.instance()
        defaults = cls()
        quarantine = s.get("quarantine.path")
        return cls(
            max_depth=int(s.get("scan.max_depth", defaults.max_depth)),
            max_entries=int(s.get("scan.max_entries", defaults.max_entries)),
            scan_workers=int(s.get("scan.workers", defaults.scan_workers)),
            hash_min_size=int(s.get("hash.min_size", defaults.hash_min_size)),
            hash_workers=int(s.get("hash.workers", defaults.hash_workers)),
            large_file_floor=int(s.get("classify.large_file_floor", defaults.large_file_floor)),
            large_file_min_age_days=int(
                s.get("classify.large_file_min_age_days", defaults.large_file_min_age_days)
            ),
            quarantine_dir=Path(quarantine).expanduser() if quarantine else defaults.quarantine_dir,
            retention_days=int(s.get("quarantine.retention_days", defaults.retention_days)),
            clean_workers=int(s.get("clean.workers", defaults.clean_workers)),
            exclusions=list(s.get("scan.exclusions", [])),
            extra_locations=list(s.get("locations.extra", [])),
            provider_paths=[Path(p).expanduser() for p in s.get("provider_paths", [])],
        )
