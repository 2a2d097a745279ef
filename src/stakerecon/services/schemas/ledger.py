"""Participant and per-epoch ledger structures."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from stakerecon.services.errors import EpochOutOfRangeError, LedgerSealedError
from stakerecon.services.schemas.chain import ValidatorStatus


class EventKind(str, Enum):
    GENESIS_DELEGATION = "genesis_delegation"
    REGISTRATION_DELEGATION = "registration_delegation"
    DELEGATION = "delegation"
    UNDELEGATION = "undelegation"
    CLAIM = "claim"

    @property
    def adds_stake(self) -> bool:
        return self in (
            EventKind.GENESIS_DELEGATION,
            EventKind.REGISTRATION_DELEGATION,
            EventKind.DELEGATION,
        )


@dataclass(frozen=True)
class LedgerEvent:
    """One stake-affecting event, already attributed to its epoch bucket."""

    kind: EventKind
    participant: str
    amount: int
    epoch: int
    block_number: int
    transaction_hash: str
    log_index: int
    staker: str | None = None


def sum_amounts(events: list[LedgerEvent]) -> int:
    return sum((e.amount for e in events), 0)


@dataclass
class EpochLedger:
    epoch: int
    status: ValidatorStatus | None = None
    delegations: list[LedgerEvent] = field(default_factory=list)
    undelegations: list[LedgerEvent] = field(default_factory=list)
    claims: list[LedgerEvent] = field(default_factory=list)
    sealed: bool = False

    def append(self, event: LedgerEvent) -> None:
        if self.sealed:
            raise LedgerSealedError(
                f"Epoch {self.epoch} ledger already consumed; cannot append {event.kind.value}"
            )
        if event.kind.adds_stake:
            self.delegations.append(event)
        elif event.kind is EventKind.UNDELEGATION:
            self.undelegations.append(event)
        else:
            self.claims.append(event)

    def seal(self) -> None:
        self.sealed = True

    @property
    def has_stake_changes(self) -> bool:
        return bool(self.delegations) or bool(self.undelegations)

    @property
    def delegated(self) -> int:
        return sum_amounts(self.delegations)

    @property
    def undelegated(self) -> int:
        return sum_amounts(self.undelegations)

    @property
    def claimed(self) -> int:
        return sum_amounts(self.claims)


class Participant:
    """A tracked validator owning one EpochLedger per epoch, indexed by epoch number."""

    def __init__(self, address: str) -> None:
        self.address: str = address
        self._epochs: list[EpochLedger] = []

    def allocate_through(self, last_epoch: int) -> None:
        for epoch in range(len(self._epochs), last_epoch + 1):
            self._epochs.append(EpochLedger(epoch=epoch))

    def ledger(self, epoch: int) -> EpochLedger:
        if epoch < 0 or epoch >= len(self._epochs):
            raise EpochOutOfRangeError(
                f"Participant {self.address} has no ledger for epoch {epoch} "
                f"(allocated 0..{len(self._epochs) - 1})"
            )
        return self._epochs[epoch]

    @property
    def epochs(self) -> list[EpochLedger]:
        return list(self._epochs)

    def __repr__(self) -> str:
        return f"<Participant({self.address}, epochs={len(self._epochs)})>"


class ParticipantSet:
    """Insertion-ordered collection of participants keyed by lower-case address."""

    def __init__(self) -> None:
        self._by_address: dict[str, Participant] = {}

    def add(self, address: str) -> Participant:
        existing = self._by_address.get(address)
        if existing is not None:
            return existing
        participant = Participant(address)
        self._by_address[address] = participant
        return participant

    def get(self, address: str) -> Participant | None:
        return self._by_address.get(address)

    def allocate_through(self, last_epoch: int) -> None:
        for participant in self._by_address.values():
            participant.allocate_through(last_epoch)

    def __contains__(self, address: object) -> bool:
        return address in self._by_address

    def __iter__(self) -> Iterator[Participant]:
        return iter(self._by_address.values())

    def __len__(self) -> int:
        return len(self._by_address)
