from pathlib import Path
from typing import Dict, Generator, Optional
import tempfile

from sqlalchemy import create_engine, event, func, select, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
import structlog

from app.config.settings import settings

logger = structlog.get_logger()

FALLBACK_DB_NAME = "ado_test_importer_fallback.db"


def _is_memory_sqlite(db_url: str) -> bool:
    url = make_url(db_url)
    return url.drivername.startswith("sqlite") and url.database in (None, "", ":memory:")


def _create_engine_from_url(db_url: str) -> Engine:
    if "sqlite" not in db_url:
        return create_engine(db_url)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if _is_memory_sqlite(db_url):
        # One shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool
    sqlite_engine = create_engine(db_url, **kwargs)

    @event.listens_for(sqlite_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")  # readers are not blocked by the importer
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


def _sqlite_file_path(db_url: str) -> Optional[Path]:
    """Absolute path of a file-backed SQLite database, None for anything else"""
    url = make_url(db_url)
    if not url.drivername.startswith("sqlite") or _is_memory_sqlite(db_url):
        return None
    path = Path(url.database)
    return path if path.is_absolute() else (Path.cwd() / path).resolve()


def _prepare_directory(directory: Path) -> None:
    """Create the directory and prove a file can be written into it"""
    directory.mkdir(parents=True, exist_ok=True)
    probe = directory / ".write_probe"
    probe.write_text("ok")
    probe.unlink()


def _resolve_database_url(configured_url: str) -> str:
    """Keep the configured URL when its SQLite file is usable, else use a temp-dir store"""
    try:
        db_path = _sqlite_file_path(configured_url)
    except ArgumentError as e:
        logger.debug("Database url left as configured", error=str(e))
        return configured_url
    if db_path is None:
        return configured_url

    try:
        _prepare_directory(db_path.parent)
    except OSError as e:
        fallback = f"sqlite:///{(Path(tempfile.gettempdir()) / FALLBACK_DB_NAME).as_posix()}"
        logger.error("Local store directory unusable", path=str(db_path), fallback=fallback, error=str(e))
        return fallback

    logger.info("Local store file", path=str(db_path))
    return configured_url


resolved_db_url = _resolve_database_url(settings.database_url)
engine = _create_engine_from_url(resolved_db_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_database() -> Generator[Session, None, None]:
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create the importer tables that do not exist yet"""
    from app.models.database import Base

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error("Schema creation failed", url=engine.url.render_as_string(hide_password=True), error=str(e))
        raise
    logger.info("Schema ready", tables=sorted(Base.metadata.tables))


def check_connection(db: Session) -> bool:
    """Return True when the database answers a trivial query"""
    try:
        return db.execute(text("SELECT 1")).scalar() == 1
    except Exception as e:
        logger.warning("Database connectivity check failed", error=str(e))
        return False


def get_stats(db: Session) -> Dict[str, int]:
    """Row counts used by the health endpoint"""
    from app.models.database import TestCaseModel, TestStepModel, TestRunModel, TokenUsageModel

    def count(model) -> int:
        return db.execute(select(func.count()).select_from(model)).scalar_one()

    return {
        "testCases": count(TestCaseModel),
        "testSteps": count(TestStepModel),
        "testRuns": count(TestRunModel),
        "tokenUsage": count(TokenUsageModel),
    }
