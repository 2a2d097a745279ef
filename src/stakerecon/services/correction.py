"""Corrective call encoding and governance proposal assembly."""

from collections.abc import Sequence
from typing import Optional

import structlog

from stakerecon.config import get_settings
from stakerecon.services.contracts import (
    FIX_VALIDATOR_EPOCH_SELECTOR,
    FIX_VALIDATOR_EPOCH_TYPES,
    PROPOSAL_TYPES,
    PROPOSE_WITH_CUSTOM_VOTING_PERIOD_SELECTOR,
    TOGGLE_DEPLOYER_WHITELIST_SIGNATURE,
    TOGGLE_PAUSE_SELECTOR,
    checksum,
    encode_call,
    selector_for,
)
from stakerecon.services.errors import EmptyCorrectionSetError, InvalidCorrectionError
from stakerecon.services.schemas.results import DriftReport, ProposalPayload

logger = structlog.get_logger(__name__)

# fixValidatorEpoch takes totals in units of 10^10 wei
AMOUNT_SCALE: int = 10**10
# Rescaled totals must fit the uint112 argument of fixValidatorEpoch
MAX_RESCALED_AMOUNT: int = 2**112 - 1

CORRECTION_DESCRIPTION = "Fix validators epochs"
PAUSE_DESCRIPTION = "Pause delegations and undelegations"
DEFAULT_SWITCH_VOTING_PERIOD = 50


def rescale_amount(amount: int) -> int:
    """Divide by AMOUNT_SCALE rounding half up, in exact integer arithmetic."""
    if amount < 0:
        raise InvalidCorrectionError(f"Cannot encode negative total {amount}")
    rescaled = (amount + AMOUNT_SCALE // 2) // AMOUNT_SCALE
    if rescaled > MAX_RESCALED_AMOUNT:
        raise InvalidCorrectionError(f"Total {amount} does not fit uint112 after rescaling")
    return rescaled


class CorrectionEncoder:
    def __init__(
        self,
        staking_address: Optional[str] = None,
        governance_address: Optional[str] = None,
        deployer_proxy_address: Optional[str] = None,
        voting_duration: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.staking_address = staking_address or settings.contracts.staking_address
        self.governance_address = governance_address or settings.contracts.governance_address
        self.deployer_proxy_address = (
            deployer_proxy_address or settings.contracts.deployer_proxy_address
        )
        self.voting_duration = voting_duration or settings.reconcile.voting_duration

    def encode_correction(self, participant: str, expected_total: int, epoch: int) -> str:
        """fixValidatorEpoch(validator, rescaled expected total, epoch) calldata."""
        return encode_call(
            FIX_VALIDATOR_EPOCH_SELECTOR,
            FIX_VALIDATOR_EPOCH_TYPES,
            [checksum(participant), rescale_amount(expected_total), epoch],
        )

    def _build(
        self,
        targets: Sequence[str],
        calldatas: Sequence[str],
        description: str,
        voting_period: int,
    ) -> ProposalPayload:
        target_list = [checksum(t) for t in targets]
        values = [0] * len(target_list)
        input_data = encode_call(
            PROPOSE_WITH_CUSTOM_VOTING_PERIOD_SELECTOR,
            PROPOSAL_TYPES,
            [
                target_list,
                values,
                [bytes.fromhex(c[2:]) for c in calldatas],
                description,
                voting_period,
            ],
        )
        logger.info(
            "Proposal encoded",
            description=description,
            calls=len(target_list),
            voting_period=voting_period,
            input_data=input_data,
        )
        return ProposalPayload(
            targets=target_list,
            values=values,
            calldatas=list(calldatas),
            description=description,
            voting_period=voting_period,
            input_data=input_data,
        )

    def build_proposal(
        self, reports: Sequence[DriftReport], voting_duration: Optional[int] = None
    ) -> ProposalPayload:
        """Batch every corrective call into one proposal against the staking contract."""
        if not reports:
            raise EmptyCorrectionSetError("No epochs to fix")
        return self._build(
            [self.staking_address] * len(reports),
            [r.calldata for r in reports],
            CORRECTION_DESCRIPTION,
            voting_duration or self.voting_duration,
        )

    def build_pause_proposal(
        self, voting_period: int = DEFAULT_SWITCH_VOTING_PERIOD
    ) -> ProposalPayload:
        return self._build(
            [self.staking_address], [TOGGLE_PAUSE_SELECTOR], PAUSE_DESCRIPTION, voting_period
        )

    def build_toggle_deployer_whitelist_proposal(
        self, enabled: bool, voting_period: int = DEFAULT_SWITCH_VOTING_PERIOD
    ) -> ProposalPayload:
        calldata = encode_call(
            selector_for(TOGGLE_DEPLOYER_WHITELIST_SIGNATURE), ["bool"], [enabled]
        )
        return self._build(
            [self.deployer_proxy_address],
            [calldata],
            f"Toggle deployer whitelist feature {'on' if enabled else 'off'}",
            voting_period,
        )
