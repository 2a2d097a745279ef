"""Reconciliation pass orchestrating the log store through the correction encoder."""

from pathlib import Path
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from stakerecon.config import Settings, get_settings
from stakerecon.models import DriftRecord, ReconciliationRun
from stakerecon.services.chain_client import ChainClient
from stakerecon.services.classifier import EventClassifier
from stakerecon.services.correction import CorrectionEncoder
from stakerecon.services.drift import DriftDetector
from stakerecon.services.epochs import epoch_duration_for_chain, epoch_of
from stakerecon.services.errors import ReconciliationError
from stakerecon.services.ledger_builder import EVENT_KINDS, EpochLedgerBuilder
from stakerecon.services.log_store import LogStore
from stakerecon.services.schemas.results import DriftReport, ReconciliationResult

logger = structlog.get_logger(__name__)


class ReconciliationService:
    """Runs one reconciliation pass and records it in the audit trail.

    Steps, strictly in order: network switch, participant registration, epoch
    bucket allocation, registration classification, Delegated / Undelegated /
    Claimed folding, drift detection, correction proposal. Any failure aborts
    the pass; a persisted run is then marked failed with no drift records.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        fallback_client: Optional[ChainClient] = None,
        session: Optional[Session] = None,
        settings: Optional[Settings] = None,
        cache_dir: Optional[Path] = None,
    ):
        self.chain_client = chain_client
        self.fallback_client = fallback_client
        self.session = session
        self.settings = settings or get_settings()
        self.cache_dir = cache_dir or self.settings.reconcile.cache_dir

    def run(
        self,
        dry_run: bool = False,
        voting_duration: Optional[int] = None,
        detailed: Optional[bool] = None,
    ) -> ReconciliationResult:
        """
        Reconcile every tracked participant against its recorded status.

        Args:
            dry_run: Compute but don't persist the audit trail
            voting_duration: Voting period for the correction proposal
            detailed: Log each drift with formatted amounts

        Returns:
            ReconciliationResult; ``proposal`` is None when nothing drifted.
        """
        persist = self.session is not None and not dry_run
        run: ReconciliationRun | None = None
        if persist:
            run = ReconciliationRun()
            self.session.add(run)
            self.session.flush()

        logger.info(
            "Starting reconciliation",
            run_id=run.run_id if run else None,
            dry_run=dry_run,
        )

        try:
            result = self._reconcile(voting_duration, detailed)
        except Exception as e:
            logger.error("Reconciliation failed", error=str(e), error_type=type(e).__name__)
            if run is not None:
                run.mark_failed(e)
                self.session.commit()
            if isinstance(e, ReconciliationError):
                raise
            raise ReconciliationError(f"Reconciliation failed: {e}") from e

        if run is not None:
            self._record(run, result)
            result.run_id = run.run_id

        logger.info(
            "Completed reconciliation",
            run_id=result.run_id,
            participants=result.participants_tracked,
            drifts=len(result.reports),
            discarded_events=result.events_discarded,
        )
        return result

    def _reconcile(
        self, voting_duration: Optional[int], detailed: Optional[bool]
    ) -> ReconciliationResult:
        contracts = self.settings.contracts
        staking = contracts.staking_address
        block_limit = self.settings.reconcile.block_limit

        chain_id = self.chain_client.get_chain_id()
        epoch_duration = epoch_duration_for_chain(chain_id)
        logger.info("Network detected", chain_id=chain_id, epoch_duration=epoch_duration)

        log_store = LogStore(self.chain_client, chain_id, self.cache_dir)
        builder = EpochLedgerBuilder(epoch_duration)

        # One head bounds every fetch and the bucket allocation
        head_block = self.chain_client.get_block_number()
        current_epoch = epoch_of(head_block, epoch_duration)

        validator_added = log_store.get_logs(
            staking, "ValidatorAdded", 0, block_limit, end_block=head_block
        )
        participants = builder.register_participants(validator_added)
        builder.allocate(current_epoch)

        classifier = EventClassifier(self.chain_client, epoch_duration, self.fallback_client)
        synthesized = [e for e in (classifier.classify(log) for log in validator_added) if e]
        builder.add_events(synthesized)

        for event_name, kind in EVENT_KINDS.items():
            logs = log_store.get_logs(staking, event_name, 0, block_limit, end_block=head_block)
            builder.add_logs(logs, kind)

        encoder = CorrectionEncoder(
            staking_address=staking,
            governance_address=contracts.governance_address,
            deployer_proxy_address=contracts.deployer_proxy_address,
            voting_duration=self.settings.reconcile.voting_duration,
        )
        detector = DriftDetector(self.chain_client, encoder, staking, detailed)
        reports = detector.detect(participants)

        proposal = None
        if reports:
            proposal = encoder.build_proposal(reports, voting_duration)
        else:
            logger.info("No epochs to fix")

        return ReconciliationResult(
            run_id=None,
            chain_id=chain_id,
            epoch_duration=epoch_duration,
            head_block=head_block,
            current_epoch=current_epoch,
            participants_tracked=len(participants),
            events_discarded=builder.events_discarded,
            reports=reports,
            proposal=proposal,
        )

    def _record(self, run: ReconciliationRun, result: ReconciliationResult) -> None:
        run.chain_id = result.chain_id
        run.epoch_duration = result.epoch_duration
        run.head_block = result.head_block
        run.current_epoch = result.current_epoch
        run.participants_tracked = result.participants_tracked
        run.drift_count = len(result.reports)
        run.proposal_input = result.proposal.input_data if result.proposal else None
        run.drifts = [_to_record(i, r) for i, r in enumerate(result.reports)]
        run.mark_completed()
        self.session.flush()


def _to_record(position: int, report: DriftReport) -> DriftRecord:
    return DriftRecord(
        position=position,
        participant=report.participant,
        epoch=report.epoch,
        expected_total=str(report.expected_total),
        recorded_total=str(report.recorded_total),
        delegated_in_epoch=str(report.delegated_in_epoch),
        undelegated_in_epoch=str(report.undelegated_in_epoch),
        claimed_in_epoch=str(report.claimed_in_epoch),
        calldata=report.calldata,
    )
