"""Configuration for the stake reconciliation engine."""

from stakerecon.config.settings import (
    ChainSettings,
    ContractSettings,
    DatabaseSettings,
    ReconcileSettings,
    Settings,
    get_settings,
)

__all__ = [
    "ChainSettings",
    "ContractSettings",
    "DatabaseSettings",
    "ReconcileSettings",
    "Settings",
    "get_settings",
]
