"""Shared fixtures: in-memory SQLite DB and an in-memory chain."""

import threading
from collections import Counter
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stakerecon.models import Base
from stakerecon.services.errors import BlockNotFoundError, RPCError
from stakerecon.services.schemas.chain import (
    BlockData,
    LogRecord,
    TransactionData,
    ValidatorStatus,
)

STAKING = "0x0000000000000000000000000000000000001000"
VALIDATOR_A = "0x00000000000000000000000000000000000000aa"
VALIDATOR_B = "0x00000000000000000000000000000000000000bb"
STAKER = "0x00000000000000000000000000000000000000cc"


def make_log(
    event: str,
    validator: str,
    block_number: int,
    amount: int = 0,
    tx_hash: str | None = None,
    log_index: int = 0,
) -> LogRecord:
    values = {"validator": validator}
    if event == "ValidatorAdded":
        values.update(owner=validator, status="1", commissionRate="0")
    else:
        values.update(staker=STAKER, amount=str(amount), epoch="0")
    return LogRecord(
        address=STAKING,
        event=event,
        block_number=block_number,
        block_hash=f"0xblock{block_number}",
        transaction_hash=tx_hash or f"0x{event.lower()}{block_number}{log_index}",
        transaction_index=0,
        log_index=log_index,
        return_values=values,
    )


def make_tx(
    tx_hash: str,
    block_number: int,
    input_data: str,
    value: int = 0,
    to_address: str | None = STAKING,
) -> TransactionData:
    return TransactionData(
        hash=tx_hash,
        block_number=block_number,
        block_hash=f"0xblock{block_number}",
        transaction_index=0,
        from_address=STAKER,
        to_address=to_address,
        value=value,
        input=input_data,
    )


class FakeChainClient:
    """In-memory chain data source recording every call it serves."""

    def __init__(self, chain_id: int = 88880, head: int = 0) -> None:
        self.chain_id = chain_id
        self.head = head
        self.logs: dict[str, list[LogRecord]] = {}
        self.transactions: dict[str, TransactionData] = {}
        self.blocks: dict[int, BlockData] = {}
        self.statuses: dict[tuple[str, int], int] = {}
        self.failing_events: set[str] = set()
        self.log_requests: list[tuple[str, int, int]] = []
        self.status_requests: list[tuple[str, int]] = []
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    def _count(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1

    def add_logs(self, *logs: LogRecord) -> None:
        for log in logs:
            self.logs.setdefault(log.event, []).append(log)

    def get_chain_id(self) -> int:
        self._count("get_chain_id")
        return self.chain_id

    def get_block_number(self) -> int:
        self._count("get_block_number")
        return self.head

    def get_past_events(
        self, contract_address: str, event_name: str, from_block: int, to_block: int
    ) -> list[LogRecord]:
        self._count("get_past_events")
        self.log_requests.append((event_name, from_block, to_block))
        if event_name in self.failing_events:
            raise RPCError(f"{event_name} unavailable")
        return [
            log
            for log in self.logs.get(event_name, [])
            if from_block <= log.block_number <= to_block
        ]

    def get_transaction(self, tx_hash: str) -> TransactionData | None:
        self._count("get_transaction")
        return self.transactions.get(tx_hash)

    def get_block(self, block_number: int, full_transactions: bool = True) -> BlockData:
        self._count("get_block")
        block = self.blocks.get(block_number)
        if block is None:
            raise BlockNotFoundError(f"Block {block_number} not found")
        return block

    def get_validator_status_at_epoch(
        self, staking_address: str, validator: str, epoch: int
    ) -> ValidatorStatus:
        self._count("get_validator_status_at_epoch")
        self.status_requests.append((validator, epoch))
        return ValidatorStatus(
            owner_address=validator,
            status=1,
            total_delegated=self.statuses.get((validator, epoch), 0),
            slashes_count=0,
            changed_at=0,
            jailed_before=0,
            claimed_at=0,
            commission_rate=0,
            total_rewards=0,
        )


@pytest.fixture()
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng: Engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    factory: sessionmaker[Session] = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    sess: Session = factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture()
def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point settings and the shared engine at a throwaway SQLite file."""
    from stakerecon.config import get_settings
    from stakerecon.database import connection

    db_path = tmp_path / "audit.db"
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DB_SQLITE_PATH", str(db_path))
    monkeypatch.setenv("STAKERECON_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("RECONCILE_CACHE_DIR", str(tmp_path / "cache"))
    get_settings.cache_clear()
    monkeypatch.setattr(connection, "_engine", None)
    monkeypatch.setattr(connection, "_session_factory", None)

    yield db_path

    if connection._engine is not None:
        connection._engine.dispose()
    get_settings.cache_clear()
