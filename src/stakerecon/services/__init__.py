"""Business logic services for stake ledger reconciliation."""

from stakerecon.services.chain_client import ChainClient
from stakerecon.services.classifier import EventClassifier
from stakerecon.services.correction import CorrectionEncoder
from stakerecon.services.deposits import DepositBackfill
from stakerecon.services.drift import DriftDetector
from stakerecon.services.ledger_builder import EpochLedgerBuilder
from stakerecon.services.log_store import LogStore
from stakerecon.services.reconciliation import ReconciliationService

__all__ = [
    "ChainClient",
    "EventClassifier",
    "CorrectionEncoder",
    "DepositBackfill",
    "DriftDetector",
    "EpochLedgerBuilder",
    "LogStore",
    "ReconciliationService",
]
