"""Application settings using Pydantic.

DB selection (deterministic, ONE place):
  - DATABASE_URL set and non-empty → PostgreSQL (use that URL).
  - DATABASE_URL absent/empty → ALWAYS SQLite (DB_SQLITE_PATH, default data/stakerecon.db).
.env is loaded from the project root deterministically (not cwd-dependent).
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _project_root() -> Path:
    """Project root. settings.py is in src/stakerecon/config/."""
    return Path(__file__).resolve().parent.parent.parent.parent


def _ensure_env_loaded() -> None:
    """Load .env from project root before any settings. Idempotent."""
    root = _project_root()
    for candidate in (root / ".env",):
        if candidate.exists():
            load_dotenv(candidate, override=False)


# Load .env as soon as config is imported
_ensure_env_loaded()


class DatabaseSettings(BaseSettings):
    """Audit trail database. Source of truth: DATABASE_URL or DB_SQLITE_PATH."""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL DSN; when set, uses Postgres. When absent, uses SQLite.",
        validation_alias="DATABASE_URL",
    )

    sqlite_path: Optional[str] = Field(
        default="data/stakerecon.db",
        description="SQLite path (relative to project root); used when DATABASE_URL is not set",
    )

    pool_size: int = Field(default=5, description="Connection pool size")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Connection recycle time in seconds")

    def _use_postgres(self) -> bool:
        """True iff DATABASE_URL is explicitly set."""
        raw = (self.database_url or "").strip()
        return bool(raw)

    def _resolved_sqlite_path(self) -> Path:
        """Absolute path to SQLite file. Always relative to project root."""
        raw = (self.sqlite_path or "data/stakerecon.db").strip()
        path = Path(raw)
        if not path.is_absolute():
            path = (_project_root() / path).resolve()
        return path

    def _redacted_postgres_dsn(self) -> str:
        url = (self.database_url or "").strip()
        return re.sub(r":([^:@]+)@", r":***@", url) if url else ""

    @property
    def url(self) -> str:
        """Build database URL. Single source of truth for engine creation."""
        if self._use_postgres():
            return (self.database_url or "").strip()
        path = self._resolved_sqlite_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path.as_posix()}"

    def db_info_for_logging(self) -> str:
        if self._use_postgres():
            return f"PostgreSQL @ {self._redacted_postgres_dsn()}"
        return f"SQLite @ {self._resolved_sqlite_path().as_posix()}"


class ChainSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHAIN_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    rpc_url: str = Field(default="http://localhost:8545", description="Primary JSON-RPC endpoint")
    secondary_rpc_url: Optional[str] = Field(
        default=None,
        description="Endpoint used to re-fetch full blocks when a transaction is pruned; defaults to rpc_url",
    )
    rpc_timeout: int = Field(default=30, description="RPC request timeout in seconds")
    retry_attempts: int = Field(default=3, description="Number of retry attempts")
    retry_delay: float = Field(default=1.0, description="Delay between retries in seconds")

    @property
    def fallback_rpc_url(self) -> str:
        return (self.secondary_rpc_url or "").strip() or self.rpc_url


class ContractSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CONTRACT_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    staking_address: str = Field(default="0x0000000000000000000000000000000000001000")
    governance_address: str = Field(default="0x0000000000000000000000000000000000007002")
    deployer_proxy_address: str = Field(default="0x0000000000000000000000000000000000007005")


class ReconcileSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECONCILE_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cache_dir: Path = Field(default=Path("cache"), description="Directory for cached event logs")
    block_limit: int = Field(
        default=30_000_000, description="Blocks per getLogs request (0 = whole range at once)"
    )
    voting_duration: int = Field(default=500, description="Voting period for correction proposals")
    detailed: bool = Field(default=True, description="Log every detected drift in detail")
    deposit_batch_width: int = Field(default=5, description="Concurrent block fetches per backfill window")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STAKERECON_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")
    data_dir: Path = Field(default=Path("data"), description="Data directory")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    chain: ChainSettings = Field(default_factory=ChainSettings)
    contracts: ContractSettings = Field(default_factory=ContractSettings)
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)

    def model_post_init(self, _context: object) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
