"""Result dataclasses returned by service operations."""

from dataclasses import dataclass, field


@dataclass
class DriftReport:
    participant: str
    epoch: int
    expected_total: int
    recorded_total: int
    cumulative_delegated: int
    cumulative_undelegated: int
    delegated_in_epoch: int
    undelegated_in_epoch: int
    claimed_in_epoch: int
    calldata: str

    @property
    def difference(self) -> int:
        return self.recorded_total - self.expected_total


@dataclass
class ProposalPayload:
    targets: list[str]
    values: list[int]
    calldatas: list[str]
    description: str
    voting_period: int
    input_data: str


@dataclass
class ReconciliationResult:
    run_id: str | None
    chain_id: int
    epoch_duration: int
    head_block: int
    current_epoch: int
    participants_tracked: int
    events_discarded: int
    reports: list[DriftReport]
    proposal: ProposalPayload | None


@dataclass(frozen=True)
class DepositRecord:
    validator: str
    epoch: int
    block_number: int
    transaction_hash: str
    amount: int


@dataclass
class BackfillResult:
    start_block: int
    end_block: int
    blocks_fetched: int
    deposits_indexed: int
    deposits: dict[str, dict[int, list[DepositRecord]]] = field(default_factory=dict)

    def total_for(self, validator: str, epoch: int) -> int:
        records = self.deposits.get(validator, {}).get(epoch, [])
        return sum((r.amount for r in records), 0)
