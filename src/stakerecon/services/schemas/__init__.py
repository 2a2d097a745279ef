"""Shared dataclasses for reconciliation services."""

from stakerecon.services.schemas.chain import (
    BlockData,
    LogRecord,
    TransactionData,
    ValidatorStatus,
)
from stakerecon.services.schemas.ledger import (
    EpochLedger,
    EventKind,
    LedgerEvent,
    Participant,
    ParticipantSet,
)
from stakerecon.services.schemas.results import (
    BackfillResult,
    DepositRecord,
    DriftReport,
    ProposalPayload,
    ReconciliationResult,
)

__all__ = [
    # Chain schemas
    "BlockData",
    "LogRecord",
    "TransactionData",
    "ValidatorStatus",
    # Ledger schemas
    "EpochLedger",
    "EventKind",
    "LedgerEvent",
    "Participant",
    "ParticipantSet",
    # Result schemas
    "BackfillResult",
    "DepositRecord",
    "DriftReport",
    "ProposalPayload",
    "ReconciliationResult",
]
