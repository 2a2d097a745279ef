"""Tests for the typer CLI commands."""

from pathlib import Path

import pytest
import typer
from eth_abi import encode
from sqlalchemy import select
from typer.testing import CliRunner

from conftest import VALIDATOR_A, FakeChainClient, make_log, make_tx
from stakerecon.cli.main import app, parse_block_range
from stakerecon.database import get_session
from stakerecon.models import ReconciliationRun, RunStatus
from stakerecon.services.schemas.chain import BlockData

runner = CliRunner()


def test_parse_block_range() -> None:
    assert parse_block_range("1000:2000") == (1000, 2000)


@pytest.mark.parametrize("raw", ["1000", "a:b", "1:2:3", "20:10"])
def test_parse_block_range_rejects_bad_input(raw: str) -> None:
    with pytest.raises(typer.BadParameter):
        parse_block_range(raw)


def test_propose_pause_prints_encoded_proposal() -> None:
    result = runner.invoke(app, ["propose-pause"])

    assert result.exit_code == 0
    assert "Pause delegations and undelegations" in result.output
    assert "0x0eb448fa" in result.output


def test_toggle_deployer_whitelist_off() -> None:
    result = runner.invoke(app, ["toggle-deployer-whitelist", "--disable", "--voting-period", "20"])

    assert result.exit_code == 0
    assert "Toggle deployer whitelist feature off" in result.output
    assert "Voting period: 20" in result.output


@pytest.fixture()
def cli_chain(monkeypatch: pytest.MonkeyPatch) -> FakeChainClient:
    """FakeChainClient served wherever the CLI builds a ChainClient."""
    chain = FakeChainClient(chain_id=88880, head=15_000)
    monkeypatch.setattr("stakerecon.services.ChainClient", lambda *args, **kwargs: chain)
    return chain


@pytest.fixture()
def drifted_chain(cli_chain: FakeChainClient) -> FakeChainClient:
    cli_chain.transactions["0xregaa"] = make_tx("0xregaa", 12_000, "0x61cadbf4", value=5 * 10**18)
    cli_chain.add_logs(
        make_log("ValidatorAdded", VALIDATOR_A, 12_000, tx_hash="0xregaa"),
        make_log("Delegated", VALIDATOR_A, 13_800, 3 * 10**18),
    )
    cli_chain.statuses[(VALIDATOR_A, 11)] = 5 * 10**18
    cli_chain.statuses[(VALIDATOR_A, 12)] = 9 * 10**18
    return cli_chain


def test_init_db_creates_schema(sqlite_db: Path) -> None:
    result = runner.invoke(app, ["init-db"])

    assert result.exit_code == 0
    assert "Database initialized successfully" in result.output
    assert sqlite_db.exists()


def test_status_without_runs(sqlite_db: Path) -> None:
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "No reconciliation runs recorded" in result.output


def test_reconcile_renders_drift_and_records_run(
    sqlite_db: Path, drifted_chain: FakeChainClient
) -> None:
    result = runner.invoke(app, ["reconcile", "--quiet"])

    assert result.exit_code == 0, result.output
    assert "Reconciliation Results" in result.output
    assert "Drifted Epochs" in result.output
    assert "Fix validators epochs" in result.output
    assert "0x0eb448fa" in result.output

    status = runner.invoke(app, ["status"])
    assert status.exit_code == 0
    assert "Reconciliation Runs" in status.output
    with get_session() as session:
        (run,) = session.scalars(select(ReconciliationRun)).all()
        assert run.status is RunStatus.SUCCESS
        assert run.drift_count == 1


def test_reconcile_dry_run_on_consistent_chain(
    sqlite_db: Path, drifted_chain: FakeChainClient
) -> None:
    drifted_chain.statuses[(VALIDATOR_A, 12)] = 8 * 10**18

    result = runner.invoke(app, ["reconcile", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "No epochs to fix" in result.output


def test_reconcile_failure_exits_nonzero(sqlite_db: Path, drifted_chain: FakeChainClient) -> None:
    drifted_chain.failing_events.add("Delegated")

    result = runner.invoke(app, ["reconcile"])

    assert result.exit_code == 1
    assert "Reconciliation failed" in result.output


def test_backfill_deposits_prints_totals(sqlite_db: Path, cli_chain: FakeChainClient) -> None:
    for n in range(0, 5):
        cli_chain.blocks[n] = BlockData(block_number=n, block_hash=f"0xblock{n}", timestamp=n)
    deposit_input = "0xf340fa01" + encode(["address"], [VALIDATOR_A]).hex()
    cli_chain.blocks[2].transactions = [make_tx("0xd1", 2, deposit_input, value=2 * 10**18)]

    result = runner.invoke(app, ["backfill-deposits", "--block-range", "0:4", "--batch-width", "2"])

    assert result.exit_code == 0, result.output
    assert "Blocks fetched: 5" in result.output
    assert "Deposits indexed: 1" in result.output
