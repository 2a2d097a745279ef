"""Historical deposit backfill over a block range."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

import structlog

from stakerecon.config import get_settings
from stakerecon.services._helpers import normalize_address
from stakerecon.services.chain_client import ChainClient
from stakerecon.services.contracts import DEPOSIT_SELECTOR, decode_call_args
from stakerecon.services.epochs import epoch_of
from stakerecon.services.schemas.chain import BlockData
from stakerecon.services.schemas.results import BackfillResult, DepositRecord

logger = structlog.get_logger(__name__)


class DepositBackfill:
    """Indexes deposit(address) calls into a per-validator, per-epoch map.

    Blocks are fetched in windows of ``batch_width`` concurrent requests; the
    next window is dispatched only after every fetch of the current one has
    finished. Any failed fetch aborts the backfill.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        epoch_duration: int,
        staking_address: Optional[str] = None,
        batch_width: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.chain_client = chain_client
        self.epoch_duration = epoch_duration
        self.staking_address = normalize_address(
            staking_address or settings.contracts.staking_address
        )
        self.batch_width = max(1, batch_width or settings.reconcile.deposit_batch_width)

    def _index_block(
        self, block: BlockData, deposits: dict[str, dict[int, list[DepositRecord]]]
    ) -> int:
        indexed = 0
        epoch = epoch_of(block.block_number, self.epoch_duration)
        for tx in block.transactions:
            if tx.to_address != self.staking_address or tx.selector != DEPOSIT_SELECTOR:
                continue
            (validator,) = decode_call_args(tx.input, ["address"])
            validator = normalize_address(str(validator))
            # First touch of a key may race between workers; setdefault keeps it idempotent
            bucket = deposits.setdefault(validator, {}).setdefault(epoch, [])
            bucket.append(
                DepositRecord(
                    validator=validator,
                    epoch=epoch,
                    block_number=block.block_number,
                    transaction_hash=tx.hash,
                    amount=tx.value,
                )
            )
            indexed += 1
        return indexed

    def _fetch_and_index(
        self, block_number: int, deposits: dict[str, dict[int, list[DepositRecord]]]
    ) -> int:
        block = self.chain_client.get_block(block_number, full_transactions=True)
        return self._index_block(block, deposits)

    def backfill(self, start_block: int, end_block: int) -> BackfillResult:
        """Index deposits for blocks start_block..end_block inclusive."""
        deposits: dict[str, dict[int, list[DepositRecord]]] = {}
        fetched = 0
        indexed = 0

        with ThreadPoolExecutor(max_workers=self.batch_width) as executor:
            for window_start in range(start_block, end_block + 1, self.batch_width):
                window_end = min(window_start + self.batch_width - 1, end_block)
                futures = [
                    executor.submit(self._fetch_and_index, n, deposits)
                    for n in range(window_start, window_end + 1)
                ]
                for fut in as_completed(futures):
                    indexed += fut.result()
                    fetched += 1
                logger.debug(
                    "Backfill window done",
                    from_block=window_start,
                    to_block=window_end,
                    deposits=indexed,
                )

        # Chain order inside each bucket regardless of which worker finished first
        for by_epoch in deposits.values():
            for records in by_epoch.values():
                records.sort(key=lambda r: (r.block_number, r.transaction_hash))

        logger.info(
            "Deposit backfill complete",
            start_block=start_block,
            end_block=end_block,
            blocks=fetched,
            deposits=indexed,
            validators=len(deposits),
        )
        return BackfillResult(
            start_block=start_block,
            end_block=end_block,
            blocks_fetched=fetched,
            deposits_indexed=indexed,
            deposits=deposits,
        )
