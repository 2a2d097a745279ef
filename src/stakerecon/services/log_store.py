"""Resumable, file-cached event log fetching."""

from pathlib import Path
from typing import Optional

import structlog

from stakerecon.config import get_settings
from stakerecon.services._helpers import dump_json, load_json
from stakerecon.services.chain_client import ChainClient
from stakerecon.services.errors import ChainClientError, LogFetchError
from stakerecon.services.schemas.chain import LogRecord

logger = structlog.get_logger(__name__)


class LogStore:
    """Fetches event logs from a start block through the chain head.

    Logs are cached per (contract address, event name, chain id, start block)
    as a JSON array ordered by block number. A run resumes one block past the
    highest cached block and rewrites the cache wholesale once the fetch loop
    has finished.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        chain_id: int,
        cache_dir: Optional[Path] = None,
    ) -> None:
        self.chain_client = chain_client
        self.chain_id = chain_id
        self.cache_dir = Path(cache_dir or get_settings().reconcile.cache_dir)

    def cache_path(self, contract_address: str, event_name: str, from_block: int) -> Path:
        return self.cache_dir / f"{contract_address}_{event_name}_{self.chain_id}_{from_block}.json"

    def _ensure_cache_dir(self) -> bool:
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create cache folder", path=str(self.cache_dir), error=str(e))
            return False
        return True

    def _load_cache(self, path: Path) -> list[dict]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Failed to read cache", path=str(path), error=str(e))
            return []
        if not raw.strip():
            return []

        try:
            entries = load_json(raw)
            if not isinstance(entries, list):
                raise ValueError("cache root is not a JSON array")
            last_block = -1
            for entry in entries:
                block_number = LogRecord.from_dict(entry).block_number
                if block_number < last_block:
                    raise ValueError(f"block {block_number} out of order after {last_block}")
                last_block = block_number
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Failed to read cache, downloading logs", path=str(path), error=str(e))
            return []
        return entries

    def _save_cache(self, path: Path, entries: list[dict]) -> None:
        try:
            path.write_text(dump_json(entries, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to write cache", path=str(path), error=str(e))

    def get_logs(
        self,
        contract_address: str,
        event_name: str,
        from_block: int = 0,
        blocks_per_request: int = 0,
        end_block: Optional[int] = None,
    ) -> list[LogRecord]:
        """All matching logs from ``from_block`` through ``end_block``.

        Without ``end_block`` the fetch stops at the head read at call time.
        """
        cache_enabled = self._ensure_cache_dir()
        path = self.cache_path(contract_address, event_name, from_block)

        entries: list[dict] = self._load_cache(path) if cache_enabled else []
        cursor = from_block
        if entries:
            highest = max(int(e["blockNumber"]) for e in entries)
            # One block gap: the highest cached block is never re-downloaded
            cursor = max(from_block, highest + 1)
            logger.info(
                "Loaded cached logs",
                event_name=event_name,
                count=len(entries),
                highest_block=highest,
                cursor=cursor,
            )

        head = end_block if end_block is not None else self.chain_client.get_block_number()
        total = max(head - from_block, 1)

        while cursor <= head:
            to_block = head
            if blocks_per_request > 0:
                to_block = min(cursor + blocks_per_request - 1, head)
            try:
                logs = self.chain_client.get_past_events(
                    contract_address, event_name, cursor, to_block
                )
            except ChainClientError as e:
                raise LogFetchError(
                    f"Failed to fetch {event_name} logs for blocks {cursor}-{to_block}: {e}"
                ) from e
            entries.extend(log.to_dict() for log in logs)
            logger.debug(
                "Fetched log window",
                event_name=event_name,
                from_block=cursor,
                to_block=to_block,
                logs=len(logs),
                progress=f"{100 * (to_block - from_block) // total}%",
            )
            cursor = to_block + 1

        if cache_enabled:
            self._save_cache(path, entries)

        logger.info("Logs ready", event_name=event_name, count=len(entries), head=head)
        return [LogRecord.from_dict(e) for e in entries]
