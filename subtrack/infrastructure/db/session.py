"""
Database engine and per-request sessions (SQLAlchemy)

One pooled engine per process; every request gets its own Session from
get_db. Row-level consistency between concurrent requests is left to
PostgreSQL.
"""
import logging

import psycopg
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from subtrack.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def engine_options(settings: Settings) -> dict:
    """create_engine kwargs; SQLite URLs (local runs) get no pool sizing"""
    options = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if not settings.get_sqlalchemy_url().startswith("sqlite"):
        options["pool_size"] = settings.DB_POOL_SIZE
        options["max_overflow"] = settings.DB_MAX_OVERFLOW
    return options


def get_engine() -> Engine:
    """Lazily created process-wide engine"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(settings.get_sqlalchemy_url(), **engine_options(settings))
    return _engine


def get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
    return _SessionLocal


def get_db() -> Session:
    """
    FastAPI dependency: one session per request, closed when the response is done
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def dispose_engine() -> None:
    """Release pooled connections. Called once the server stops serving requests."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        logger.info("Database connection pool released")
    _engine = None
    _SessionLocal = None


def check_db_connection() -> None:
    """
    Readiness check over a raw psycopg connection

    Raises:
        psycopg.OperationalError: if the database is unreachable
    """
    with psycopg.connect(get_settings().get_psycopg_dsn(), connect_timeout=3) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")
            cur.fetchone()
