"""
Log file setup and log retention.
"""
from __future__ import annotations

from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime, timedelta
import logging

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "stockmanager.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

_FILE_HANDLER_NAME = "stockmanager_file_handler"


def configure_file_logging(log_directory: str, level: int = logging.INFO) -> Path:
    """
    Attach a size-rotated log file handler to the root logger.

    Calling this again replaces the previous handler, so the log directory can
    change at runtime without duplicating output.
    """
    log_dir = Path(log_directory).expanduser().resolve()
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "name", "") == _FILE_HANDLER_NAME:
            root_logger.removeHandler(handler)
            handler.close()

    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.name = _FILE_HANDLER_NAME
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(handler)
    if root_logger.level > level:
        root_logger.setLevel(level)
    return log_dir


def cleanup_old_logs(log_directory: str, retention_days: int) -> int:
    """Remove ``*.log*`` files not modified within retention_days. Returns the count removed."""
    if retention_days <= 0:
        return 0
    log_dir = Path(log_directory).expanduser().resolve()
    if not log_dir.is_dir():
        return 0

    cutoff = datetime.now() - timedelta(days=retention_days)
    removed = 0
    for path in log_dir.glob("*.log*"):
        if not path.is_file():
            continue
        try:
            if datetime.fromtimestamp(path.stat().st_mtime) < cutoff:
                path.unlink(missing_ok=True)
                removed += 1
        except OSError as exc:
            logger.warning("Could not remove old log file %s: %s", path, exc)
    if removed:
        logger.info("Removed %d log files older than %d days", removed, retention_days)
    return removed
