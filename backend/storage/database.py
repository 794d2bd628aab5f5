"""
Database configuration and session management.
SQLite in the per-user app data directory by default; any SQLAlchemy URL
(e.g. Postgres) via DATABASE_URL.

- Connection pool tuning for server databases
- WAL pragmas, integrity check and rolling backups for SQLite
- Alembic-first schema upgrades with create_all fallback
"""
import logging
import os
import shutil
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional, Tuple
from sqlalchemy import create_engine, text, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from config.paths import default_backup_directory, default_database_url

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", default_database_url())
BACKUP_PREFIX = "stockmanager_"
BACKUPS_TO_KEEP = 5

connect_args = {}
pool_kwargs = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False
    pool_kwargs["pool_pre_ping"] = True
else:
    pool_kwargs.update({
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    })

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    echo=os.getenv("SQL_ECHO", "false").lower() == "true",
    **pool_kwargs,
)

if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, _connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a database session.

    Usage:
        @router.get("/alerts")
        def list_alerts(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize or migrate the database schema.
    Prefer Alembic upgrades; fall back to create_all for local recovery.
    """
    if run_alembic_upgrade_head():
        return
    logger.warning("Falling back to SQLAlchemy create_all because Alembic upgrade was unavailable")
    from storage import models  # noqa: F401  # registers models on Base.metadata
    Base.metadata.create_all(bind=engine)


def run_alembic_upgrade_head() -> bool:
    """
    Attempt Alembic `upgrade head`.
    Returns True when migrations were applied successfully.
    """
    backend_dir = Path(__file__).resolve().parent.parent
    alembic_ini = backend_dir / "alembic.ini"
    script_location = backend_dir / "alembic"
    if not alembic_ini.exists() or not script_location.exists():
        logger.warning("Alembic assets not found, skipping migration upgrade")
        return False

    from alembic import command
    from alembic.config import Config
    from alembic.util import CommandError

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", DATABASE_URL)
    config.attributes["skip_logging_config"] = True
    try:
        command.upgrade(config, "head")
    except (CommandError, SQLAlchemyError):
        logger.exception("Alembic migration upgrade failed")
        return False
    logger.info("Applied Alembic migrations to head")
    return True


def _sqlite_file_path() -> Path:
    return Path(DATABASE_URL.replace("sqlite:///", "", 1)).resolve()


def backup_sqlite_database(backup_dir: Optional[str] = None) -> str:
    """
    Create a timestamped backup of the SQLite database file and keep the newest five.

    Returns:
        Path to the backup file

    Raises:
        RuntimeError: If the database is not SQLite or backup fails
    """
    if not DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("Backup is only supported for SQLite databases")

    db_path = _sqlite_file_path()
    if not db_path.exists():
        raise RuntimeError(f"Database file not found: {db_path}")

    backup_path = Path(backup_dir or default_backup_directory()).resolve()
    backup_path.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_file = backup_path / f"{BACKUP_PREFIX}{timestamp}.db"

    try:
        source = sqlite3.connect(str(db_path))
        dest = sqlite3.connect(str(backup_file))
        try:
            source.backup(dest)
        finally:
            dest.close()
            source.close()
        logger.info("Database backed up to %s", backup_file)
    except sqlite3.Error as exc:
        try:
            shutil.copy2(str(db_path), str(backup_file))
            logger.info("Database copied to %s (fallback)", backup_file)
        except OSError:
            raise RuntimeError(f"Database backup failed: {exc}") from exc

    backups = sorted(
        backup_path.glob(f"{BACKUP_PREFIX}*.db"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for old_backup in backups[BACKUPS_TO_KEEP:]:
        try:
            old_backup.unlink()
        except OSError as exc:
            logger.debug("Could not remove old backup %s: %s", old_backup, exc)

    return str(backup_file)


def check_integrity() -> Tuple[bool, str]:
    """
    Run SQLite PRAGMA integrity_check.
    Returns (ok, result_text); non-SQLite databases report (True, "not sqlite").
    """
    if not DATABASE_URL.startswith("sqlite"):
        return True, "not sqlite"
    try:
        with engine.connect() as conn:
            result = conn.execute(text("PRAGMA integrity_check")).scalar()
    except SQLAlchemyError as exc:
        logger.critical("Database integrity check error: %s", exc)
        return False, str(exc)
    ok = str(result).strip().lower() == "ok"
    if ok:
        logger.info("Database integrity check passed")
    else:
        logger.critical("Database integrity check FAILED: %s", result)
    return ok, str(result)
