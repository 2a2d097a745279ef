"""Drift detection: compare reconstructed stake totals with recorded status."""

from typing import Optional

import structlog

from stakerecon.config import get_settings
from stakerecon.services._helpers import format_amount
from stakerecon.services.chain_client import ChainClient
from stakerecon.services.correction import CorrectionEncoder
from stakerecon.services.schemas.chain import ValidatorStatus
from stakerecon.services.schemas.ledger import EpochLedger, Participant, ParticipantSet
from stakerecon.services.schemas.results import DriftReport

logger = structlog.get_logger(__name__)


class DriftDetector:
    """Walks each participant's epochs in order and reports where totals disagree.

    Running delegated/undelegated accumulators start at zero per participant.
    Epochs without delegation or undelegation events are skipped: no status is
    fetched for them and nothing is reported, even when a claim landed there.
    A mismatch does not stop the walk; every later epoch is checked against its
    own accumulated expectation.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        encoder: CorrectionEncoder,
        staking_address: Optional[str] = None,
        detailed: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        self.chain_client = chain_client
        self.encoder = encoder
        self.staking_address = staking_address or settings.contracts.staking_address
        self.detailed = settings.reconcile.detailed if detailed is None else detailed
        self.status_fetches = 0

    def status_for(self, participant: Participant, ledger: EpochLedger) -> ValidatorStatus:
        if ledger.status is None:
            ledger.status = self.chain_client.get_validator_status_at_epoch(
                self.staking_address, participant.address, ledger.epoch
            )
            self.status_fetches += 1
        return ledger.status

    def detect_participant(self, participant: Participant) -> list[DriftReport]:
        reports: list[DriftReport] = []
        total_delegated = 0
        total_undelegated = 0

        for ledger in participant.epochs:
            ledger.seal()
            if not ledger.has_stake_changes:
                continue

            status = self.status_for(participant, ledger)
            delegated = ledger.delegated
            undelegated = ledger.undelegated
            total_delegated += delegated
            total_undelegated += undelegated
            expected = total_delegated - total_undelegated

            if expected == status.total_delegated:
                continue

            report = DriftReport(
                participant=participant.address,
                epoch=ledger.epoch,
                expected_total=expected,
                recorded_total=status.total_delegated,
                cumulative_delegated=total_delegated,
                cumulative_undelegated=total_undelegated,
                delegated_in_epoch=delegated,
                undelegated_in_epoch=undelegated,
                claimed_in_epoch=ledger.claimed,
                calldata=self.encoder.encode_correction(participant.address, expected, ledger.epoch),
            )
            reports.append(report)

            if self.detailed:
                logger.warning(
                    "Stake drift detected",
                    validator=participant.address,
                    epoch=ledger.epoch,
                    status_total=format_amount(status.total_delegated),
                    total_delegated=format_amount(total_delegated),
                    total_undelegated=format_amount(total_undelegated),
                    expected=format_amount(expected),
                    epoch_delegated=format_amount(delegated),
                    epoch_undelegated=format_amount(undelegated),
                    epoch_claimed=format_amount(ledger.claimed),
                )
        return reports

    def detect(self, participants: ParticipantSet) -> list[DriftReport]:
        """Reports in participant insertion order, then ascending epoch."""
        reports: list[DriftReport] = []
        for participant in participants:
            reports.extend(self.detect_participant(participant))
        logger.info(
            "Drift detection complete",
            participants=len(participants),
            status_fetches=self.status_fetches,
            drifts=len(reports),
        )
        return reports
