"""SQLAlchemy ORM models for the reconciliation audit trail."""

from stakerecon.models.base import Base
from stakerecon.models.enums import RunStatus
from stakerecon.models.reconciliation import DriftRecord, ReconciliationRun

__all__ = [
    "Base",
    "RunStatus",
    "DriftRecord",
    "ReconciliationRun",
]
