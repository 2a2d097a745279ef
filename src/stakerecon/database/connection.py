"""Database connection and session management."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stakerecon.config import get_settings
from stakerecon.models import Base

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

REQUIRED_TABLES = ("reconciliation_runs", "drift_records")


def get_resolved_sqlite_path() -> Path | None:
    """Absolute path to the SQLite file, or None on PostgreSQL."""
    db = get_settings().database
    if db._use_postgres():
        return None
    return db._resolved_sqlite_path()


def get_engine() -> Engine:
    """Shared engine, created on first use."""
    global _engine

    if _engine is None:
        settings = get_settings()
        opts = {"echo": settings.debug}

        if settings.database._use_postgres():
            opts.update(
                pool_size=settings.database.pool_size,
                pool_timeout=settings.database.pool_timeout,
                pool_recycle=settings.database.pool_recycle,
                pool_pre_ping=True,
            )

        _engine = create_engine(settings.database.url, **opts)
        logger.info("Database engine created: %s", settings.database.db_info_for_logging())

        if not settings.database._use_postgres():
            @event.listens_for(_engine, "connect")
            def _set_sqlite_pragma(dbapi_conn, connection_record):
                cur = dbapi_conn.cursor()
                cur.execute("PRAGMA foreign_keys=ON")
                cur.execute("PRAGMA journal_mode=WAL")
                cur.execute("PRAGMA busy_timeout=30000")
                cur.close()

    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Database session with commit/rollback."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def verify_required_tables(engine: Engine | None = None) -> list[str]:
    """Required tables that are missing."""
    if engine is None:
        engine = get_engine()
    existing = set(inspect(engine).get_table_names())
    return [t for t in REQUIRED_TABLES if t not in existing]


def init_database(engine: Engine | None = None) -> list[str]:
    """Create the audit tables. Idempotent; returns the tables it created."""
    if engine is None:
        engine = get_engine()
    missing_before = verify_required_tables(engine)

    Base.metadata.create_all(engine)

    still_missing = verify_required_tables(engine)
    if still_missing:
        db_path = get_resolved_sqlite_path()
        hint = f" (file: {db_path})" if db_path else ""
        raise RuntimeError(f"Schema init failed: missing tables {still_missing}{hint}")

    created = [t for t in missing_before if t not in still_missing]
    if created:
        logger.info("Schema init: created tables %s", created)
    else:
        logger.info("Schema init: all tables present")
    return created

