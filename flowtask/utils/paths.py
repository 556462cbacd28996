# Rev 0.2.0

"""Paths and XDG helpers (Rev 0.2.0)
- XDG Base Directory layout for data and config (logs: see logging_setup)
- DB defaults to $XDG_DATA_HOME/flowtask/flowtask.db, FLOWTASK_DB overrides
- SQL migrations ship inside the package (flowtask/migrations)
"""
from __future__ import annotations
import os
from pathlib import Path


APP_NAME = "flowtask"


XDG_DATA_HOME = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
XDG_CONFIG_HOME = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


DATA_DIR = XDG_DATA_HOME / APP_NAME
CONFIG_DIR = XDG_CONFIG_HOME / APP_NAME


# Package-relative locations
PACKAGE_ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = (PACKAGE_ROOT / "migrations").resolve()


DB_PATH = Path(os.environ.get("FLOWTASK_DB", DATA_DIR / "flowtask.db"))


def config_dir() -> Path:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    return CONFIG_DIR
