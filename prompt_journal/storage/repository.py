"""
Repository pattern for data access.

Handles reading and writing the prompt collection held under a single store
key. Every mutation rewrites the whole collection in one ``set`` call.
"""

import json
import secrets
import string
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from loguru import logger

from prompt_journal.core.metadata import format_timestamp, utc_now
from prompt_journal.core.token_counter import TokenEstimate

from .backup import BackupManager
from .errors import CorruptStoreError, NotFoundError, ShapeError
from .models import PromptEntry
from .store import DEFAULT_COLLECTION_KEY, KeyValueStore
from .validation import loads_strict, validate_entry

ID_PREFIX = "p_"
ID_SUFFIX_LENGTH = 7

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


class PromptRepository:
    """CRUD access to the prompt collection.

    The store is injected so the same code runs against SQLite on disk or an
    in-memory dict in tests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        collection_key: str = DEFAULT_COLLECTION_KEY,
        backups: Optional[BackupManager] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize the repository.

        Args:
            store: Key-value store holding the collection
            collection_key: Key under which the collection is stored
            backups: Backup manager used before deletes; one is created on the
                same store when omitted
            clock: Source of "now" for ids and default timestamps
        """
        self.store = store
        self.collection_key = collection_key
        self._clock = clock or utc_now
        self.backups = backups or BackupManager(store, collection_key, clock=self._clock)

    def read_raw(self) -> List[Dict[str, Any]]:
        """Read the stored collection without validating its entries.

        Raises:
            CorruptStoreError: If the stored value is not a JSON array
        """
        raw = self.store.get(self.collection_key)
        if not raw:
            return []
        try:
            records = loads_strict(raw)
        except ValueError as e:
            raise CorruptStoreError(f"Failed to parse stored prompts: {e}") from e
        if not isinstance(records, list):
            raise CorruptStoreError("Failed to parse stored prompts: stored data is not an array")
        logger.debug(f"Read {len(records)} prompts from {self.collection_key}")
        return records

    def write_raw(self, records: List[Dict[str, Any]]) -> None:
        """Replace the stored collection in a single write."""
        self.store.set(self.collection_key, json.dumps(records, allow_nan=False))
        logger.debug(f"Wrote {len(records)} prompts to {self.collection_key}")

    def get_all(self) -> List[PromptEntry]:
        """Get every stored prompt.

        Returns:
            Prompts in stored order (empty if nothing is stored)

        Raises:
            CorruptStoreError: If the collection or any entry in it is malformed
        """
        entries = []
        for index, record in enumerate(self.read_raw()):
            try:
                validate_entry(record)
            except ShapeError as e:
                raise CorruptStoreError(f"stored prompt at index {index} is malformed: {e}") from e
            entries.append(PromptEntry.from_dict(record))
        return entries

    def get(self, prompt_id: str) -> PromptEntry:
        """Get one prompt by id.

        Raises:
            NotFoundError: If no prompt has that id
        """
        for entry in self.get_all():
            if entry.id == prompt_id:
                return entry
        raise NotFoundError(f"prompt not found: {prompt_id}")

    def save(self, prompt: Union[PromptEntry, Mapping[str, Any]]) -> PromptEntry:
        """Insert or replace a prompt, keyed by id.

        Missing id, timestamps and token estimate are filled in before
        validation. The model is always required.

        Args:
            prompt: Entry or raw mapping (camelCase keys)

        Returns:
            The entry as saved

        Raises:
            ShapeError: If the prompt is malformed after defaults are applied
            CorruptStoreError: If the existing collection cannot be read
        """
        records = self.read_raw()
        record = prompt.to_dict() if isinstance(prompt, PromptEntry) else dict(prompt)

        if not record.get("id"):
            record["id"] = self._generate_id({r.get("id") for r in records if isinstance(r, Mapping)})
        if not record.get("model"):
            raise ShapeError("prompt.model is required")
        if not record.get("createdAt"):
            record["createdAt"] = format_timestamp(self._clock())
        if not record.get("updatedAt"):
            record["updatedAt"] = record["createdAt"]
        if not record.get("tokenEstimate"):
            record["tokenEstimate"] = TokenEstimate.zero().to_dict()

        validate_entry(record)

        for index, existing in enumerate(records):
            if isinstance(existing, Mapping) and existing.get("id") == record["id"]:
                records[index] = record
                break
        else:
            records.append(record)

        self.write_raw(records)
        logger.info(f"Prompt saved: {record['id']}")
        return PromptEntry.from_dict(record)

    def delete_by_id(self, prompt_id: str) -> str:
        """Delete a prompt after backing up the collection.

        Returns:
            Key of the backup taken before the delete

        Raises:
            NotFoundError: If no prompt has that id (nothing is changed)
        """
        records = self.read_raw()
        for index, record in enumerate(records):
            if isinstance(record, Mapping) and record.get("id") == prompt_id:
                break
        else:
            raise NotFoundError(f"prompt not found: {prompt_id}")

        backup_key = self.backups.create()
        del records[index]
        self.write_raw(records)
        logger.info(f"Prompt deleted: {prompt_id} (backup {backup_key})")
        return backup_key

    def clear(self) -> None:
        """Remove the whole collection. Backups are left alone."""
        self.store.remove(self.collection_key)
        logger.info(f"Collection cleared: {self.collection_key}")

    def _generate_id(self, taken: set) -> str:
        millis = int(self._clock().timestamp() * 1000)
        while True:
            suffix = "".join(secrets.choice(_BASE36_DIGITS) for _ in range(ID_SUFFIX_LENGTH))
            candidate = f"{ID_PREFIX}{_to_base36(millis)}_{suffix}"
            if candidate not in taken:
                return candidate
