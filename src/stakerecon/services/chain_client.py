"""Chain RPC client for fetching staking data."""

import time
from collections.abc import Callable
from typing import Any, Optional

import structlog
from eth_abi import decode
from web3 import Web3
from web3.exceptions import BlockNotFound, TransactionNotFound

from stakerecon.config import get_settings
from stakerecon.services._helpers import normalize_address
from stakerecon.services.contracts import (
    GET_VALIDATOR_STATUS_AT_EPOCH_SIGNATURE,
    STAKING_EVENTS,
    VALIDATOR_STATUS_TYPES,
    checksum,
    encode_call,
    selector_for,
)
from stakerecon.services.errors import (
    BlockNotFoundError,
    ChainClientError,
    ChainConnectionError,
    RPCError,
)
from stakerecon.services.schemas.chain import (
    BlockData,
    LogRecord,
    TransactionData,
    ValidatorStatus,
)

logger = structlog.get_logger(__name__)


def _hex(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


class ChainClient:
    """Client for the staking chain over web3 JSON-RPC."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        web3: Optional[Web3] = None,
    ):
        settings = get_settings()
        self.rpc_url = rpc_url or settings.chain.rpc_url
        self.timeout = timeout or settings.chain.rpc_timeout
        self.retry_attempts = retry_attempts or settings.chain.retry_attempts
        self.retry_delay = retry_delay if retry_delay is not None else settings.chain.retry_delay
        self._w3: Optional[Web3] = web3
        self._connected = web3 is not None

    def connect(self) -> bool:
        """Connect to the chain. Raises ChainConnectionError on failure."""
        try:
            self._w3 = Web3(
                Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.timeout})
            )
            if not self._w3.is_connected():
                raise ChainConnectionError(f"Endpoint {self.rpc_url} is not reachable")
        except ChainConnectionError:
            self._w3 = None
            raise
        except Exception as e:
            self._w3 = None
            raise ChainConnectionError(f"Failed to connect to {self.rpc_url}: {e}") from e
        self._connected = True
        logger.info("Connected to chain", rpc_url=self.rpc_url[:50])
        return True

    def is_connected(self) -> bool:
        return self._connected and self._w3 is not None

    def _require_connection(self) -> Web3:
        if not self.is_connected():
            self.connect()
        if self._w3 is None:
            raise ChainConnectionError("Not connected: call connect() first")
        return self._w3

    def _retry_call(self, func: Callable[[], Any]) -> Any:
        last_error: Exception | None = None
        for attempt in range(self.retry_attempts):
            try:
                return func()
            except ChainClientError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    "RPC call failed, retrying",
                    attempt=attempt + 1,
                    error=str(e)[:100],
                )
                if attempt < self.retry_attempts - 1:
                    time.sleep(self.retry_delay * (attempt + 1))
        raise RPCError(f"RPC call failed after {self.retry_attempts} attempts: {last_error}")

    # ------------------------------------------------------------------
    # Chain identity and height
    # ------------------------------------------------------------------

    def get_chain_id(self) -> int:
        w3 = self._require_connection()
        return int(self._retry_call(lambda: w3.eth.chain_id))

    def get_block_number(self) -> int:
        w3 = self._require_connection()
        return int(self._retry_call(lambda: w3.eth.block_number))

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def get_past_events(
        self, contract_address: str, event_name: str, from_block: int, to_block: int
    ) -> list[LogRecord]:
        w3 = self._require_connection()
        event_spec = STAKING_EVENTS.get(event_name)
        if event_spec is None:
            raise ChainClientError(f"Unknown staking event: {event_name}")

        params = {
            "address": checksum(contract_address),
            "topics": [event_spec.topic],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        raw_logs = self._retry_call(lambda: w3.eth.get_logs(params))

        records = []
        for raw in raw_logs:
            topics = [bytes(t) for t in raw["topics"]]
            data = raw["data"]
            if isinstance(data, str):
                data = bytes.fromhex(data[2:] if data.startswith("0x") else data)
            records.append(
                LogRecord(
                    address=normalize_address(str(raw["address"])),
                    event=event_name,
                    block_number=int(raw["blockNumber"]),
                    block_hash=_hex(raw.get("blockHash")),
                    transaction_hash=_hex(raw["transactionHash"]),
                    transaction_index=int(raw.get("transactionIndex", 0)),
                    log_index=int(raw.get("logIndex", 0)),
                    return_values=event_spec.decode(topics, bytes(data)),
                )
            )
        records.sort(key=lambda r: (r.block_number, r.log_index))
        return records

    # ------------------------------------------------------------------
    # Transactions and blocks
    # ------------------------------------------------------------------

    @staticmethod
    def _to_transaction(raw: Any) -> TransactionData:
        to_address = raw.get("to")
        return TransactionData(
            hash=_hex(raw["hash"]).lower(),
            block_number=int(raw["blockNumber"]),
            block_hash=_hex(raw.get("blockHash")),
            transaction_index=int(raw.get("transactionIndex", 0)),
            from_address=normalize_address(str(raw["from"])),
            to_address=normalize_address(str(to_address)) if to_address else None,
            value=int(raw.get("value", 0)),
            input=_hex(raw.get("input", raw.get("data", b""))).lower(),
        )

    def get_transaction(self, tx_hash: str) -> TransactionData | None:
        """Transaction by hash, or None when the node cannot serve it."""
        w3 = self._require_connection()

        def _fetch():
            try:
                return w3.eth.get_transaction(tx_hash)
            except TransactionNotFound:
                return None

        raw = self._retry_call(_fetch)
        if not raw or raw.get("blockNumber") is None:
            return None
        return self._to_transaction(raw)

    def get_block(self, block_number: int, full_transactions: bool = True) -> BlockData:
        w3 = self._require_connection()

        def _fetch():
            try:
                return w3.eth.get_block(block_number, full_transactions=full_transactions)
            except BlockNotFound as e:
                raise BlockNotFoundError(f"Block {block_number} not found") from e

        raw = self._retry_call(_fetch)
        if raw is None:
            raise BlockNotFoundError(f"Block {block_number} not found")

        transactions = []
        if full_transactions:
            transactions = [self._to_transaction(tx) for tx in raw.get("transactions", [])]
        return BlockData(
            block_number=int(raw["number"]),
            block_hash=_hex(raw.get("hash")),
            timestamp=int(raw.get("timestamp", 0)),
            transactions=transactions,
        )

    # ------------------------------------------------------------------
    # Contract reads
    # ------------------------------------------------------------------

    def get_validator_status_at_epoch(
        self, staking_address: str, validator: str, epoch: int
    ) -> ValidatorStatus:
        w3 = self._require_connection()
        data = encode_call(
            selector_for(GET_VALIDATOR_STATUS_AT_EPOCH_SIGNATURE),
            ["address", "uint64"],
            [checksum(validator), epoch],
        )
        call = {"to": checksum(staking_address), "data": data}
        output = self._retry_call(lambda: w3.eth.call(call))
        values = decode(VALIDATOR_STATUS_TYPES, bytes(output))
        return ValidatorStatus(
            owner_address=normalize_address(str(values[0])),
            status=int(values[1]),
            total_delegated=int(values[2]),
            slashes_count=int(values[3]),
            changed_at=int(values[4]),
            jailed_before=int(values[5]),
            claimed_at=int(values[6]),
            commission_rate=int(values[7]),
            total_rewards=int(values[8]),
        )
