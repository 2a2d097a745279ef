"""Tests for stakerecon.database against a temporary SQLite file."""

from pathlib import Path

import pytest
from sqlalchemy import func, select

from stakerecon.database import (
    get_engine,
    get_resolved_sqlite_path,
    get_session,
    init_database,
    verify_required_tables,
)
from stakerecon.database.connection import REQUIRED_TABLES
from stakerecon.models import ReconciliationRun, RunStatus


def _run_count() -> int:
    with get_session() as session:
        return session.scalar(select(func.count()).select_from(ReconciliationRun))


def test_init_database_creates_audit_tables(sqlite_db: Path) -> None:
    created = init_database()

    assert sorted(created) == sorted(REQUIRED_TABLES)
    assert verify_required_tables() == []
    assert get_resolved_sqlite_path() == sqlite_db
    assert sqlite_db.exists()


def test_init_database_is_idempotent(sqlite_db: Path) -> None:
    init_database()

    assert init_database() == []


def test_sqlite_pragmas_are_applied(sqlite_db: Path) -> None:
    with get_engine().connect() as conn:
        assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
        assert conn.exec_driver_sql("PRAGMA journal_mode").scalar() == "wal"


def test_get_session_commits_on_exit(sqlite_db: Path) -> None:
    init_database()

    with get_session() as session:
        run = ReconciliationRun(chain_id=88880)
        run.mark_completed()
        session.add(run)

    with get_session() as session:
        (stored,) = session.scalars(select(ReconciliationRun)).all()
        assert stored.chain_id == 88880
        assert stored.status is RunStatus.SUCCESS


def test_get_session_rolls_back_on_error(sqlite_db: Path) -> None:
    init_database()

    with pytest.raises(RuntimeError, match="boom"):
        with get_session() as session:
            session.add(ReconciliationRun(chain_id=1))
            session.flush()
            raise RuntimeError("boom")

    assert _run_count() == 0
