"""Chain-related data transfer objects."""

from dataclasses import dataclass, field

from stakerecon.services._helpers import JsonDict, normalize_address


@dataclass(frozen=True)
class LogRecord:
    """A decoded event log, in the shape persisted to the log cache."""

    address: str
    event: str
    block_number: int
    block_hash: str
    transaction_hash: str
    transaction_index: int
    log_index: int
    return_values: dict[str, str]

    @property
    def validator(self) -> str:
        return normalize_address(self.return_values["validator"])

    @property
    def amount(self) -> int:
        return int(self.return_values["amount"])

    def to_dict(self) -> JsonDict:
        return {
            "address": self.address,
            "event": self.event,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "transactionHash": self.transaction_hash,
            "transactionIndex": self.transaction_index,
            "logIndex": self.log_index,
            "returnValues": dict(self.return_values),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "LogRecord":
        return cls(
            address=str(raw.get("address", "")),
            event=str(raw.get("event", "")),
            block_number=int(raw["blockNumber"]),
            block_hash=str(raw.get("blockHash", "")),
            transaction_hash=str(raw["transactionHash"]),
            transaction_index=int(raw.get("transactionIndex", 0)),
            log_index=int(raw.get("logIndex", 0)),
            return_values={k: str(v) for k, v in dict(raw.get("returnValues", {})).items()},
        )


@dataclass(frozen=True)
class TransactionData:
    hash: str
    block_number: int
    block_hash: str
    transaction_index: int
    from_address: str
    to_address: str | None
    value: int
    input: str

    @property
    def selector(self) -> str:
        """First four bytes of call data as 0x-prefixed lower-case hex."""
        return self.input[:10].lower()


@dataclass
class BlockData:
    block_number: int
    block_hash: str
    timestamp: int
    transactions: list[TransactionData] = field(default_factory=list)

    def find_transaction(self, tx_hash: str) -> TransactionData | None:
        wanted = tx_hash.lower()
        for tx in self.transactions:
            if tx.hash.lower() == wanted:
                return tx
        return None


@dataclass(frozen=True)
class ValidatorStatus:
    """Authoritative validator snapshot returned by getValidatorStatusAtEpoch."""

    owner_address: str
    status: int
    total_delegated: int
    slashes_count: int
    changed_at: int
    jailed_before: int
    claimed_at: int
    commission_rate: int
    total_rewards: int
