"""Shared exception hierarchy for reconciliation services."""

# ── Chain ─────────────────────────────────────────────────────────────────────


class ChainClientError(Exception):
    """Base exception for chain client errors."""


class RPCError(ChainClientError):
    """RPC call failed."""


class BlockNotFoundError(ChainClientError):
    """Requested block not found."""


class ChainConnectionError(ChainClientError):
    """Cannot connect to RPC endpoint."""


# ── Log store ─────────────────────────────────────────────────────────────────


class LogStoreError(Exception):
    """Base exception for log store errors."""


class LogFetchError(LogStoreError):
    """A log window could not be fetched."""


# ── Classification ────────────────────────────────────────────────────────────


class ClassificationError(Exception):
    """Base exception for classification errors."""


class UnknownSelectorError(ClassificationError):
    """Registration transaction called an unrecognized function."""


class TransactionUnavailableError(ClassificationError):
    """Transaction could not be resolved by hash nor located in its block."""


# ── Ledger ────────────────────────────────────────────────────────────────────


class LedgerError(Exception):
    """Base exception for epoch ledger errors."""


class EpochOutOfRangeError(LedgerError):
    """Event targets an epoch bucket that was never allocated."""


class LedgerSealedError(LedgerError):
    """Append attempted after the ledger was consumed by drift detection."""


# ── Correction ────────────────────────────────────────────────────────────────


class CorrectionError(Exception):
    """Base exception for correction encoding errors."""


class EmptyCorrectionSetError(CorrectionError):
    """No drift reports to correct."""


class InvalidCorrectionError(CorrectionError):
    """A corrective call cannot be encoded."""


# ── Reconciliation ────────────────────────────────────────────────────────────


class ReconciliationError(Exception):
    """A reconciliation pass failed."""
