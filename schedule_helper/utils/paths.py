# Rev 0.2.0

"""Paths and XDG helpers (Rev 0.2.0)
- Uses XDG Base Directory spec
- Database lives under $XDG_DATA_HOME/scheduleZ/data/ScheduleHelper.db
- Schema migrations ship inside the package (schedule_helper/data/migrations)
"""
from __future__ import annotations
import os
from pathlib import Path


APP_NAME = "scheduleZ"
DB_FILENAME = "ScheduleHelper.db"


XDG_DATA_HOME = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
XDG_STATE_HOME = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
XDG_CONFIG_HOME = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


DATA_DIR = XDG_DATA_HOME / APP_NAME / "data"
STATE_DIR = XDG_STATE_HOME / APP_NAME
LOGS_DIR = STATE_DIR / "logs"
CONFIG_DIR = XDG_CONFIG_HOME / APP_NAME


# Package-relative locations
PACKAGE_ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = (PACKAGE_ROOT / "data" / "migrations").resolve()


DB_PATH = DATA_DIR / DB_FILENAME


def ensure_dirs() -> None:
    for p in (DATA_DIR, STATE_DIR, LOGS_DIR, CONFIG_DIR):
        p.mkdir(parents=True, exist_ok=True)


def config_dir() -> Path:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    return CONFIG_DIR
