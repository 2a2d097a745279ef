"""Tests for the windowed deposit backfill."""

import time

import pytest
from eth_abi import encode

from conftest import STAKING, VALIDATOR_A, VALIDATOR_B, FakeChainClient, make_tx
from stakerecon.services.deposits import DepositBackfill
from stakerecon.services.errors import BlockNotFoundError
from stakerecon.services.schemas.chain import BlockData

OTHER_CONTRACT = "0x0000000000000000000000000000000000002000"


def _deposit_input(validator: str) -> str:
    return "0xf340fa01" + encode(["address"], [validator]).hex()


def _fill_blocks(chain: FakeChainClient, start: int, end: int) -> None:
    for n in range(start, end + 1):
        chain.blocks[n] = BlockData(block_number=n, block_hash=f"0xblock{n}", timestamp=n)


def test_indexes_deposits_per_validator_and_epoch(chain: FakeChainClient) -> None:
    _fill_blocks(chain, 0, 29)
    chain.blocks[3].transactions = [make_tx("0xd1", 3, _deposit_input(VALIDATOR_A), value=10)]
    chain.blocks[7].transactions = [make_tx("0xd2", 7, _deposit_input(VALIDATOR_A), value=5)]
    chain.blocks[12].transactions = [
        make_tx("0xd3", 12, _deposit_input(VALIDATOR_A), value=1),
        make_tx("0xd4", 12, _deposit_input(VALIDATOR_B), value=2),
    ]

    result = DepositBackfill(chain, 10, STAKING, batch_width=4).backfill(0, 29)

    assert result.blocks_fetched == 30
    assert result.deposits_indexed == 4
    assert result.total_for(VALIDATOR_A, 0) == 15
    assert result.total_for(VALIDATOR_A, 1) == 1
    assert result.total_for(VALIDATOR_B, 1) == 2
    assert result.total_for(VALIDATOR_B, 0) == 0
    assert [r.block_number for r in result.deposits[VALIDATOR_A][0]] == [3, 7]


def test_ignores_other_calls_and_contracts(chain: FakeChainClient) -> None:
    _fill_blocks(chain, 0, 4)
    chain.blocks[1].transactions = [
        make_tx("0xa", 1, _deposit_input(VALIDATOR_A), value=9, to_address=OTHER_CONTRACT),
        make_tx("0xb", 1, "0x61cadbf4", value=9),
        make_tx("0xc", 1, "0x", value=9, to_address=None),
    ]

    result = DepositBackfill(chain, 10, STAKING, batch_width=2).backfill(0, 4)

    assert result.deposits_indexed == 0
    assert result.deposits == {}


def test_every_block_in_range_is_fetched_once(chain: FakeChainClient) -> None:
    _fill_blocks(chain, 100, 112)

    result = DepositBackfill(chain, 10, STAKING, batch_width=5).backfill(100, 112)

    assert result.blocks_fetched == 13
    assert chain.calls["get_block"] == 13


def test_missing_block_aborts_backfill(chain: FakeChainClient) -> None:
    _fill_blocks(chain, 0, 9)
    del chain.blocks[6]

    with pytest.raises(BlockNotFoundError):
        DepositBackfill(chain, 10, STAKING, batch_width=3).backfill(0, 9)


class TimelineChainClient(FakeChainClient):
    """Records when each block fetch starts and ends."""

    def __init__(self) -> None:
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0
        self.timeline: list[tuple[str, int]] = []

    def get_block(self, block_number: int, full_transactions: bool = True) -> BlockData:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.timeline.append(("start", block_number))
        try:
            time.sleep(0.005)
            return super().get_block(block_number, full_transactions)
        finally:
            with self._lock:
                self.in_flight -= 1
                self.timeline.append(("end", block_number))


def test_windows_are_bounded_and_run_one_after_another() -> None:
    chain = TimelineChainClient()
    _fill_blocks(chain, 0, 13)

    DepositBackfill(chain, 10, STAKING, batch_width=4).backfill(0, 13)

    assert chain.max_in_flight <= 4
    windows = [range(0, 4), range(4, 8), range(8, 12), range(12, 14)]
    for current, following in zip(windows, windows[1:]):
        last_end = max(
            i for i, (kind, n) in enumerate(chain.timeline) if kind == "end" and n in current
        )
        first_start = min(
            i for i, (kind, n) in enumerate(chain.timeline) if kind == "start" and n in following
        )
        assert last_end < first_start
