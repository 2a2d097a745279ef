"""Classification of validator registration transactions into ledger events."""

from enum import Enum
from typing import Optional

import structlog

from stakerecon.services._helpers import normalize_address
from stakerecon.services.chain_client import ChainClient
from stakerecon.services.contracts import (
    ADD_VALIDATOR_SELECTOR,
    GENESIS_INIT_SELECTOR,
    REGISTER_VALIDATOR_SELECTOR,
)
from stakerecon.services.epochs import epoch_of
from stakerecon.services.errors import TransactionUnavailableError, UnknownSelectorError
from stakerecon.services.schemas.chain import LogRecord, TransactionData
from stakerecon.services.schemas.ledger import EventKind, LedgerEvent

logger = structlog.get_logger(__name__)

# Genesis validators carry no on-chain stake; this is their off-ledger allocation.
GENESIS_AMOUNT: int = 10_000_000 * 10**18


class RegistrationPattern(str, Enum):
    """How a validator entered the set, keyed by the registering call's selector."""

    GENESIS_BOOTSTRAP = GENESIS_INIT_SELECTOR
    SELF_REGISTRATION = REGISTER_VALIDATOR_SELECTOR
    REGISTRATION_WITHOUT_STAKE = ADD_VALIDATOR_SELECTOR

    @classmethod
    def from_selector(cls, selector: str) -> "RegistrationPattern":
        try:
            return cls(selector.lower())
        except ValueError as e:
            raise UnknownSelectorError(f"Unknown registration selector: {selector}") from e


class EventClassifier:
    """Turns ValidatorAdded logs into synthesized delegation events."""

    def __init__(
        self,
        chain_client: ChainClient,
        epoch_duration: int,
        fallback_client: Optional[ChainClient] = None,
    ) -> None:
        self.chain_client = chain_client
        self.fallback_client = fallback_client or chain_client
        self.epoch_duration = epoch_duration

    def resolve_transaction(self, log: LogRecord) -> TransactionData:
        tx = self.chain_client.get_transaction(log.transaction_hash)
        if tx is not None:
            return tx

        logger.warning(
            "Transaction not found, fetching it from its block",
            tx_hash=log.transaction_hash,
            block_number=log.block_number,
        )
        block = self.fallback_client.get_block(log.block_number, full_transactions=True)
        tx = block.find_transaction(log.transaction_hash)
        if tx is None:
            raise TransactionUnavailableError(
                f"Transaction {log.transaction_hash} not found in block {log.block_number}"
            )
        return tx

    def classify(self, log: LogRecord) -> LedgerEvent | None:
        tx = self.resolve_transaction(log)
        pattern = RegistrationPattern.from_selector(tx.selector)
        validator = normalize_address(log.return_values["validator"])

        if pattern is RegistrationPattern.GENESIS_BOOTSTRAP:
            return LedgerEvent(
                kind=EventKind.GENESIS_DELEGATION,
                participant=validator,
                amount=GENESIS_AMOUNT,
                epoch=0,
                block_number=tx.block_number,
                transaction_hash=tx.hash,
                log_index=log.log_index,
            )
        if pattern is RegistrationPattern.SELF_REGISTRATION:
            return LedgerEvent(
                kind=EventKind.REGISTRATION_DELEGATION,
                participant=validator,
                amount=tx.value,
                epoch=epoch_of(tx.block_number, self.epoch_duration) + 1,
                block_number=tx.block_number,
                transaction_hash=tx.hash,
                log_index=log.log_index,
            )
        return None
