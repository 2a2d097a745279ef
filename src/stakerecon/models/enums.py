"""Enumeration types for the audit trail."""

from enum import Enum


class RunStatus(str, Enum):
    """Status of a reconciliation pass."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
