"""
Backup snapshots of the prompt collection.

A backup is the raw serialized collection copied under a key made of a fixed
prefix and a canonical timestamp. Backups are never rewritten; they live until
deleted or pruned.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from prompt_journal.core.metadata import format_timestamp, next_millisecond, utc_now

from .errors import NotFoundError
from .store import DEFAULT_BACKUP_PREFIX, DEFAULT_COLLECTION_KEY, KeyValueStore

EMPTY_COLLECTION = "[]"


@dataclass(frozen=True)
class BackupInfo:
    """A backup key and the timestamp it was taken at."""
    key: str
    timestamp: str


class BackupManager:
    """Creates, lists, restores and deletes collection snapshots."""

    def __init__(
        self,
        store: KeyValueStore,
        collection_key: str = DEFAULT_COLLECTION_KEY,
        prefix: str = DEFAULT_BACKUP_PREFIX,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.collection_key = collection_key
        self.prefix = prefix
        self._clock = clock or utc_now

    def create(self) -> str:
        """Snapshot the current collection.

        Returns:
            The new backup key
        """
        timestamp = format_timestamp(self._clock())
        # Two snapshots in the same millisecond must not overwrite each other.
        while self.store.get(self.prefix + timestamp) is not None:
            timestamp = next_millisecond(timestamp)
        key = self.prefix + timestamp

        raw = self.store.get(self.collection_key) or EMPTY_COLLECTION
        self.store.set(key, raw)
        logger.info(f"Backup created: {key}")
        return key

    def restore(self, key: str) -> None:
        """Overwrite the live collection with a backup, verbatim.

        The content is not re-validated: restore is the rollback path and must
        reproduce exactly what was snapshotted.

        Raises:
            NotFoundError: If the backup key does not exist
        """
        raw = self.store.get(key)
        if raw is None:
            raise NotFoundError(f"backup not found: {key}")
        self.store.set(self.collection_key, raw)
        logger.info(f"Backup restored: {key}")

    def list(self) -> List[BackupInfo]:
        """All backups, newest first."""
        items = [
            BackupInfo(key=key, timestamp=key[len(self.prefix):])
            for key in self.store.keys()
            if key.startswith(self.prefix)
        ]
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items

    def delete(self, key: str) -> None:
        """Remove a backup. Unknown keys are ignored."""
        self.store.remove(key)
        logger.debug(f"Backup deleted: {key}")

    def prune(self, keep: Optional[int]) -> List[str]:
        """Delete all but the newest ``keep`` backups.

        Args:
            keep: Number of backups to retain; None disables pruning

        Returns:
            Keys that were deleted
        """
        if keep is None:
            return []
        if keep < 0:
            raise ValueError("keep must be >= 0")
        removed = [item.key for item in self.list()[keep:]]
        for key in removed:
            self.store.remove(key)
        if removed:
            logger.info(f"Pruned {len(removed)} old backups")
        return removed
