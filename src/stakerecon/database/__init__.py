"""Database connection and session management."""

from stakerecon.database.connection import (
    get_engine,
    get_resolved_sqlite_path,
    get_session,
    get_session_factory,
    init_database,
    verify_required_tables,
)

__all__ = [
    "get_engine",
    "get_resolved_sqlite_path",
    "get_session",
    "get_session_factory",
    "init_database",
    "verify_required_tables",
]
