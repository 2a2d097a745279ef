"""Folds classified events into per-participant, per-epoch ledgers."""

from collections.abc import Iterable

import structlog

from stakerecon.services._helpers import normalize_address
from stakerecon.services.epochs import epoch_of
from stakerecon.services.schemas.chain import LogRecord
from stakerecon.services.schemas.ledger import EventKind, LedgerEvent, ParticipantSet

logger = structlog.get_logger(__name__)

# Stake changes activate one epoch after the block that emitted them; claims settle at once.
DEFERRED_KINDS: frozenset[EventKind] = frozenset({EventKind.DELEGATION, EventKind.UNDELEGATION})

EVENT_KINDS: dict[str, EventKind] = {
    "Delegated": EventKind.DELEGATION,
    "Undelegated": EventKind.UNDELEGATION,
    "Claimed": EventKind.CLAIM,
}


class EpochLedgerBuilder:
    """Assigns every event to a Participant × Epoch bucket."""

    def __init__(self, epoch_duration: int) -> None:
        self.epoch_duration = epoch_duration
        self.participants = ParticipantSet()
        self.events_discarded = 0

    def register_participants(self, validator_added: Iterable[LogRecord]) -> ParticipantSet:
        for log in validator_added:
            self.participants.add(log.validator)
        logger.info("Participants registered", count=len(self.participants))
        return self.participants

    def allocate(self, current_epoch: int) -> None:
        """Give every participant buckets 0..current_epoch + 1 before any event lands."""
        self.participants.allocate_through(current_epoch + 1)

    def epoch_for(self, block_number: int, kind: EventKind) -> int:
        epoch = epoch_of(block_number, self.epoch_duration)
        return epoch + 1 if kind in DEFERRED_KINDS else epoch

    def event_from_log(self, log: LogRecord, kind: EventKind) -> LedgerEvent:
        staker = log.return_values.get("staker")
        return LedgerEvent(
            kind=kind,
            participant=log.validator,
            amount=log.amount,
            epoch=self.epoch_for(log.block_number, kind),
            block_number=log.block_number,
            transaction_hash=log.transaction_hash,
            log_index=log.log_index,
            staker=normalize_address(staker) if staker else None,
        )

    def add_event(self, event: LedgerEvent) -> bool:
        participant = self.participants.get(event.participant)
        if participant is None:
            self.events_discarded += 1
            return False
        participant.ledger(event.epoch).append(event)
        return True

    def add_events(self, events: Iterable[LedgerEvent]) -> int:
        return sum(1 for event in events if self.add_event(event))

    def add_logs(self, logs: Iterable[LogRecord], kind: EventKind) -> int:
        added = self.add_events(self.event_from_log(log, kind) for log in logs)
        logger.debug(
            "Folded logs into ledgers",
            kind=kind.value,
            added=added,
            discarded_total=self.events_discarded,
        )
        return added
