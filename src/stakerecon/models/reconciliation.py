"""ReconciliationRun and DriftRecord models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stakerecon.models.base import Base, generate_uuid, utc_now
from stakerecon.models.enums import RunStatus


class ReconciliationRun(Base):
    """
    Audit log for each reconciliation pass.

    A failed pass keeps its row with status FAILED and no drift records;
    partial reports are never persisted.
    """

    __tablename__ = "reconciliation_runs"

    run_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[RunStatus] = mapped_column(
        Enum(RunStatus, name="run_status_enum"),
        nullable=False,
        default=RunStatus.RUNNING,
    )

    # Chain context
    chain_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    epoch_duration: Mapped[Optional[int]] = mapped_column(nullable=True)
    head_block: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    current_epoch: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Statistics
    participants_tracked: Mapped[int] = mapped_column(nullable=False, default=0)
    drift_count: Mapped[int] = mapped_column(nullable=False, default=0)

    proposal_input: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    drifts: Mapped[list["DriftRecord"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="DriftRecord.position",
    )

    __table_args__ = (
        Index("ix_reconciliation_runs_status", "status"),
        Index("ix_reconciliation_runs_started", "started_at"),
    )

    def mark_completed(self, status: RunStatus = RunStatus.SUCCESS) -> None:
        self.completed_at = utc_now()
        self.status = status

    def mark_failed(self, error: Exception) -> None:
        self.completed_at = utc_now()
        self.status = RunStatus.FAILED
        self.error_details = {
            "type": type(error).__name__,
            "message": str(error),
        }

    def __repr__(self) -> str:
        return (
            f"<ReconciliationRun(id={self.run_id[:8]}..., "
            f"status={self.status.value}, drifts={self.drift_count})>"
        )


class DriftRecord(Base):
    """One detected drift. Amounts are decimal strings in the smallest unit."""

    __tablename__ = "drift_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    run_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reconciliation_runs.run_id", ondelete="CASCADE"), nullable=False
    )
    # Order within the run's proposal batch
    position: Mapped[int] = mapped_column(nullable=False)

    participant: Mapped[str] = mapped_column(String(42), nullable=False)
    epoch: Mapped[int] = mapped_column(BigInteger, nullable=False)

    expected_total: Mapped[str] = mapped_column(String(80), nullable=False)
    recorded_total: Mapped[str] = mapped_column(String(80), nullable=False)
    delegated_in_epoch: Mapped[str] = mapped_column(String(80), nullable=False, default="0")
    undelegated_in_epoch: Mapped[str] = mapped_column(String(80), nullable=False, default="0")
    claimed_in_epoch: Mapped[str] = mapped_column(String(80), nullable=False, default="0")

    calldata: Mapped[str] = mapped_column(Text, nullable=False)

    run: Mapped[ReconciliationRun] = relationship(back_populates="drifts")

    __table_args__ = (
        Index("ix_drift_records_run", "run_id"),
        Index("ix_drift_records_participant_epoch", "participant", "epoch"),
    )

    def __repr__(self) -> str:
        return f"<DriftRecord({self.participant}, epoch={self.epoch})>"
