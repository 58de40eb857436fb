"""Durable JSON storage for the audit history.

The history file is only ever replaced whole, so a crash mid-save leaves
the previous history in place rather than a truncated file.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from reclaim.utils import xdg_data_home

log = logging.getLogger(__name__)

_DATA_DIR = xdg_data_home() / "reclaim"

HISTORY_FILE = _DATA_DIR / "history.json"


def _empty_history() -> dict[str, Any]:
    return {"events": []}


def load_history() -> dict[str, Any]:
    """Load the audit history, or an empty one if there is none yet."""
    if not HISTORY_FILE.exists():
        return _empty_history()
    try:
        with open(HISTORY_FILE, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        log.exception("Failed to load history file: %s", HISTORY_FILE)
        return _empty_history()
    if not isinstance(data, dict):
        log.warning("Ignoring malformed history file: %s", HISTORY_FILE)
        return _empty_history()
    data.setdefault("events", [])
    return data


def save_history(data: dict[str, Any]) -> None:
    """Replace the history file with *data* in one atomic step."""
    tmp = HISTORY_FILE.with_name(HISTORY_FILE.name + ".tmp")
    try:
        _DATA_DIR.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, HISTORY_FILE)
    except OSError:
        log.exception("Failed to save history file: %s", HISTORY_FILE)
        tmp.unlink(missing_ok=True)
