# Rev 0.2.0
# schedule_helper/utils/config.py
from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .paths import DB_PATH, config_dir

log = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"

_DEFAULTS: Dict[str, Any] = {
    "store": {
        "database": None,           # None -> XDG data dir
        "uri": False,
        "max_task_depth": 5,
        "name_collation": "BINARY",
        "busy_timeout_ms": 5000,
    },
    "rollup": {
        "exclude_cancelled_leaves": True,
        "exclude_cancelled_branches": False,
    },
}

COLLATIONS = ("BINARY", "NOCASE", "RTRIM")


def settings_file() -> Path:
    return config_dir() / SETTINGS_FILENAME


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    path = path or settings_file()
    if path.exists():
        try:
            return _merge(_DEFAULTS, json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError):
            log.warning("Unreadable settings file %s; using defaults", path, exc_info=True)
            return copy.deepcopy(_DEFAULTS)
    return copy.deepcopy(_DEFAULTS)


def save_settings(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or settings_file()
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


@dataclass(frozen=True)
class StoreConfig:
    """Connection target + store policy.

    `database` is handed to sqlite3.connect untouched: a file path, ":memory:",
    or a "file:" URI when `uri` is True.
    """
    database: str
    uri: bool = False
    max_task_depth: int = 5
    name_collation: str = "BINARY"
    busy_timeout_ms: int = 5000

    def __post_init__(self) -> None:
        if self.max_task_depth < 1:
            raise ValueError("max_task_depth must be >= 1")
        if self.name_collation.upper() not in COLLATIONS:
            raise ValueError(f"unsupported collation {self.name_collation!r}")

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "StoreConfig":
        store = settings.get("store", {})
        database = os.environ.get("SCHEDULEZ_DB") or store.get("database") or str(DB_PATH)
        return cls(
            database=str(database),
            uri=bool(store.get("uri", False)),
            max_task_depth=int(store.get("max_task_depth", 5)),
            name_collation=str(store.get("name_collation", "BINARY")).upper(),
            busy_timeout_ms=int(store.get("busy_timeout_ms", 5000)),
        )
