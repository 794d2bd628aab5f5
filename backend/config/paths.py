"""
Per-user data locations for the database, logs and backups.

STOCKMANAGER_APP_DATA_DIR wins when set; otherwise the platform's usual
application data root is used. Sandboxed environments that cannot write there
fall back to a workspace directory, then to the system temp directory.
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

APP_IDENTIFIER = "com.stockmanager.app"
DATA_DIR_ENV = "STOCKMANAGER_APP_DATA_DIR"
DATABASE_FILE_NAME = "stockmanager.db"


def _env(name: str) -> str:
    return str(os.getenv(name, "")).strip()


def _platform_root() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    if os.name == "nt":
        appdata = _env("APPDATA")
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    xdg = _env("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def _is_writable(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        marker = directory / ".stockmanager_write_test"
        marker.write_text("ok", encoding="utf-8")
        marker.unlink(missing_ok=True)
        return True
    except OSError:
        return False


def _first_writable(candidates: Iterable[Path]) -> Path:
    """Return the first candidate that can be created and written to."""
    tried = []
    for candidate in candidates:
        resolved = candidate.expanduser().resolve()
        if _is_writable(resolved):
            if tried:
                logger.warning("App data directory %s not writable; using %s", tried[0], resolved)
            return resolved
        tried.append(resolved)
    raise OSError(f"No writable application data directory among: {', '.join(map(str, tried))}")


def resolve_app_data_dir() -> Path:
    """Directory holding the database, logs and backups."""
    override = _env(DATA_DIR_ENV)
    primary = Path(override) if override else _platform_root() / APP_IDENTIFIER
    return _first_writable([
        primary,
        Path.cwd() / ".stockmanager-data",
        Path(tempfile.gettempdir()) / "stockmanager-data",
    ])


def default_database_url() -> str:
    # sqlite:/// followed by an absolute path
    return f"sqlite:///{resolve_app_data_dir() / DATABASE_FILE_NAME}"


def default_log_directory() -> str:
    return str(resolve_app_data_dir() / "logs")


def default_backup_directory() -> str:
    return str(resolve_app_data_dir() / "backups")
