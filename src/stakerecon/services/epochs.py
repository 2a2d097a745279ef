"""Epoch arithmetic and per-network epoch durations."""

TESTNET_CHAIN_ID: int = 88880
TESTNET_EPOCH_DURATION: int = 1200
MAINNET_EPOCH_DURATION: int = 28800


def epoch_duration_for_chain(chain_id: int) -> int:
    if chain_id == TESTNET_CHAIN_ID:
        return TESTNET_EPOCH_DURATION
    return MAINNET_EPOCH_DURATION


def epoch_of(block_number: int, epoch_duration: int) -> int:
    return block_number // epoch_duration
