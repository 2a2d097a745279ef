"""Main CLI entry point."""

from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from stakerecon.services._helpers import format_amount

app = typer.Typer(
    name="stakerecon",
    help="Validator stake ledger reconciliation CLI",
    add_completion=False,
)

console = Console()


def parse_block_range(block_range: str) -> tuple[int, int]:
    """Parse block range string like '1000:2000'."""
    try:
        parts = block_range.split(":")
        if len(parts) != 2:
            raise ValueError("Invalid format")
        start, end = int(parts[0]), int(parts[1])
    except (ValueError, IndexError):
        raise typer.BadParameter(
            f"Invalid block range '{block_range}'. Expected format: START:END (e.g., 1000:2000)"
        )
    if start > end:
        raise typer.BadParameter(f"Invalid block range '{block_range}': start is after end")
    return start, end


def _print_proposal(proposal) -> None:
    console.print(f"\n[bold]{proposal.description}[/bold] ({len(proposal.calldatas)} calls)")
    console.print(f"Voting period: {proposal.voting_period}")
    console.print("Input data:")
    console.print(proposal.input_data, soft_wrap=True)


@app.command()
def init_db(
    force: bool = typer.Option(False, "--force", "-f", help="Drop and recreate tables"),
):
    """Initialize the audit trail schema."""
    from stakerecon.database import get_engine, init_database
    from stakerecon.models import Base

    with console.status("Initializing database..."):
        if force:
            Base.metadata.drop_all(get_engine())
            console.print("[yellow]Dropped existing tables[/yellow]")
        init_database()

    console.print("[green]Database initialized successfully[/green]")


@app.command()
def reconcile(
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute without recording the run"),
    voting_duration: Optional[int] = typer.Option(
        None, "--voting-duration", help="Voting period for the correction proposal"
    ),
    detailed: bool = typer.Option(
        True, "--detailed/--quiet", help="Log every drift with formatted amounts"
    ),
):
    """Rebuild stake ledgers from events and propose fixes for drifted epochs."""
    from stakerecon.config import get_settings
    from stakerecon.database import get_session, init_database
    from stakerecon.services import ChainClient, ReconciliationService
    from stakerecon.services.errors import ReconciliationError

    settings = get_settings()
    mode = "[yellow](dry run)[/yellow]" if dry_run else ""
    console.print(f"Reconciling stake ledgers {mode}...")

    chain_client = ChainClient()
    fallback_client = ChainClient(rpc_url=settings.chain.fallback_rpc_url)

    if not dry_run:
        init_database()

    try:
        with get_session() as session:
            service = ReconciliationService(chain_client, fallback_client, session=session)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task("Reconciling...", total=None)
                result = service.run(
                    dry_run=dry_run, voting_duration=voting_duration, detailed=detailed
                )
                progress.remove_task(task)
    except ReconciliationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Reconciliation Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Run ID", result.run_id or "-")
    table.add_row("Chain ID", str(result.chain_id))
    table.add_row("Epoch Duration", str(result.epoch_duration))
    table.add_row("Head Block", str(result.head_block))
    table.add_row("Current Epoch", str(result.current_epoch))
    table.add_row("Participants", str(result.participants_tracked))
    table.add_row("Events Discarded", str(result.events_discarded))
    table.add_row("Drifted Epochs", str(len(result.reports)))
    console.print(table)

    if not result.reports:
        console.print("\n[green]No epochs to fix[/green]")
        return

    drift_table = Table(title="Drifted Epochs")
    drift_table.add_column("Validator", style="cyan")
    drift_table.add_column("Epoch", justify="right")
    drift_table.add_column("Expected", justify="right", style="green")
    drift_table.add_column("Recorded", justify="right", style="red")
    drift_table.add_column("Difference", justify="right")
    for report in result.reports:
        drift_table.add_row(
            report.participant,
            str(report.epoch),
            format_amount(report.expected_total),
            format_amount(report.recorded_total),
            format_amount(report.difference),
        )
    console.print(drift_table)
    _print_proposal(result.proposal)


@app.command()
def propose_pause(
    voting_period: int = typer.Option(50, "--voting-period", help="Voting period in blocks"),
):
    """Encode a proposal pausing delegations and undelegations."""
    from stakerecon.services import CorrectionEncoder

    _print_proposal(CorrectionEncoder().build_pause_proposal(voting_period))


@app.command()
def toggle_deployer_whitelist(
    enable: bool = typer.Option(..., "--enable/--disable", help="Turn the whitelist on or off"),
    voting_period: int = typer.Option(50, "--voting-period", help="Voting period in blocks"),
):
    """Encode a proposal switching the deployer whitelist."""
    from stakerecon.services import CorrectionEncoder

    proposal = CorrectionEncoder().build_toggle_deployer_whitelist_proposal(enable, voting_period)
    _print_proposal(proposal)


@app.command()
def backfill_deposits(
    block_range: str = typer.Option(..., "--block-range", "-b", help="Block range (e.g., 1000:2000)"),
    batch_width: Optional[int] = typer.Option(
        None, "--batch-width", help="Concurrent block fetches per window"
    ),
):
    """Index deposit calls to the staking contract per validator and epoch."""
    from stakerecon.services import ChainClient, DepositBackfill
    from stakerecon.services.epochs import epoch_duration_for_chain

    start_block, end_block = parse_block_range(block_range)
    chain_client = ChainClient()
    epoch_duration = epoch_duration_for_chain(chain_client.get_chain_id())

    console.print(f"Backfilling deposits for blocks {start_block} to {end_block}...")
    with console.status("Fetching blocks..."):
        result = DepositBackfill(chain_client, epoch_duration, batch_width=batch_width).backfill(
            start_block, end_block
        )

    table = Table(title="Deposits")
    table.add_column("Validator", style="cyan")
    table.add_column("Epoch", justify="right")
    table.add_column("Count", justify="right")
    table.add_column("Total", justify="right", style="green")
    for validator, by_epoch in result.deposits.items():
        for epoch in sorted(by_epoch):
            table.add_row(
                validator,
                str(epoch),
                str(len(by_epoch[epoch])),
                format_amount(result.total_for(validator, epoch)),
            )
    console.print(table)
    console.print(f"Blocks fetched: {result.blocks_fetched}")
    console.print(f"Deposits indexed: {result.deposits_indexed}")


@app.command()
def status(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of runs to show"),
):
    """Show recent reconciliation runs."""
    from sqlalchemy import select

    from stakerecon.database import get_session, init_database
    from stakerecon.models import ReconciliationRun

    init_database()
    with get_session() as session:
        runs = session.scalars(
            select(ReconciliationRun).order_by(ReconciliationRun.started_at.desc()).limit(limit)
        ).all()

        if not runs:
            console.print("[yellow]No reconciliation runs recorded[/yellow]")
            return

        table = Table(title="Reconciliation Runs")
        table.add_column("Run ID", style="cyan")
        table.add_column("Started")
        table.add_column("Status")
        table.add_column("Chain", justify="right")
        table.add_column("Epoch", justify="right")
        table.add_column("Drifts", justify="right")
        for run in runs:
            row = run.to_dict()
            table.add_row(
                row["run_id"][:8],
                str(row["started_at"]),
                run.status.value,
                str(row["chain_id"] or "-"),
                str(row["current_epoch"] if row["current_epoch"] is not None else "-"),
                str(row["drift_count"]),
            )
    console.print(table)


if __name__ == "__main__":
    app()
