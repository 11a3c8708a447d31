"""
Export and import of the prompt collection.

Export produces a versioned, self-describing document. Import validates such a
document, snapshots the current collection, applies the change, and restores
the snapshot if anything goes wrong while applying it.

Import order:
1. Validate shape and version - nothing is written on failure
2. Back up the current collection - the rollback point
3. Replace or merge
4. Write; on failure in 3-4 restore the backup, then re-raise
"""

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from loguru import logger

from prompt_journal.core.metadata import format_timestamp, utc_now

from .backup import BackupManager
from .errors import ShapeError
from .repository import PromptRepository
from .validation import (
    EXPORT_VERSION,
    is_number,
    loads_strict,
    validate_entry,
    validate_export_document
)

EXPORT_FILENAME_PREFIX = "prompt-journal-export-"

DuplicateCallback = Callable[[int], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class JournalStats:
    """Summary statistics stored alongside an export."""
    total_prompts: int
    average_rating: Optional[float]
    most_used_model: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPrompts": self.total_prompts,
            "averageRating": self.average_rating,
            "mostUsedModel": self.most_used_model,
        }


@dataclass(frozen=True)
class ExportDocument:
    """Portable representation of the whole collection."""
    version: str
    exported_at: str
    stats: JournalStats
    prompts: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "exportedAt": self.exported_at,
            "stats": self.stats.to_dict(),
            "prompts": self.prompts,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, allow_nan=False)

    @property
    def filename(self) -> str:
        return export_filename(self.exported_at)


@dataclass
class ImportOptions:
    """How an import treats the existing collection.

    ``replace_duplicates`` and ``on_duplicate_choice`` decide once for the
    whole batch; there is no per-entry choice.
    """
    replace_all: bool = False
    replace_duplicates: Optional[bool] = None
    on_duplicate_choice: Optional[DuplicateCallback] = None


@dataclass(frozen=True)
class ImportResult:
    """Outcome of a successful import."""
    success: bool
    backup_key: str
    imported: int = 0
    replaced: int = 0
    skipped: int = 0


def compute_stats(records: List[Mapping[str, Any]]) -> JournalStats:
    """Compute export statistics.

    Entries without a numeric rating are left out of the average. Ties for the
    most used model go to the model seen first.
    """
    ratings = [r["rating"] for r in records if is_number(r.get("rating"))]
    average_rating = sum(ratings) / len(ratings) if ratings else None

    model_counts: Dict[str, int] = {}
    for record in records:
        model_counts[record["model"]] = model_counts.get(record["model"], 0) + 1

    most_used_model = None
    max_count = 0
    for model, count in model_counts.items():
        if count > max_count:
            max_count = count
            most_used_model = model

    return JournalStats(
        total_prompts=len(records),
        average_rating=average_rating,
        most_used_model=most_used_model
    )


def export_filename(exported_at: str) -> str:
    """File name for an export, safe on every filesystem."""
    stamp = exported_at.replace(":", "-").replace(".", "-")
    return f"{EXPORT_FILENAME_PREFIX}{stamp}.json"


class TransferPipeline:
    """Moves the collection in and out of export documents."""

    def __init__(
        self,
        repository: PromptRepository,
        backups: Optional[BackupManager] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.repository = repository
        self.backups = backups or repository.backups
        self._clock = clock or utc_now

    def export(self) -> ExportDocument:
        """Build an export document from the stored collection.

        Raises:
            ShapeError: If any stored entry is malformed
            CorruptStoreError: If the collection cannot be read
        """
        records = self.repository.read_raw()
        for index, record in enumerate(records):
            try:
                validate_entry(record)
            except ShapeError as e:
                raise ShapeError(f"stored prompt at index {index}: {e}") from e

        document = ExportDocument(
            version=EXPORT_VERSION,
            exported_at=format_timestamp(self._clock()),
            stats=compute_stats(records),
            prompts=records
        )
        logger.info(f"Exported {len(records)} prompts")
        return document

    async def import_document(
        self,
        document: Any,
        options: Optional[ImportOptions] = None
    ) -> ImportResult:
        """Import a parsed export document.

        Args:
            document: Parsed JSON object
            options: Replace/merge behavior; defaults to merge, skipping duplicates

        Returns:
            ImportResult with the key of the pre-import backup

        Raises:
            UnsupportedVersionError: If the document version is not supported
            ShapeError: If the document or any entry is malformed
            Exception: Whatever failed while applying, after rollback
        """
        options = options or ImportOptions()
        validate_export_document(document)
        incoming = list(document["prompts"])

        backup_key = self.backups.create()

        try:
            existing = self.repository.read_raw()
            if options.replace_all:
                self.repository.write_raw(incoming)
                result = ImportResult(success=True, backup_key=backup_key, imported=len(incoming))
            else:
                result = await self._merge(existing, incoming, options, backup_key)
        except Exception:
            try:
                self.backups.restore(backup_key)
            except Exception as rollback_error:
                logger.error(f"Rollback failed for {backup_key}: {rollback_error}")
            raise

        logger.info(
            f"Import complete: {result.imported} imported, {result.replaced} replaced, "
            f"{result.skipped} skipped (backup {backup_key})"
        )
        return result

    async def import_text(self, text: str, options: Optional[ImportOptions] = None) -> ImportResult:
        """Parse JSON text and import it.

        Raises:
            ShapeError: If the text is not strict JSON
        """
        try:
            document = loads_strict(text)
        except ValueError as e:
            raise ShapeError(f"Failed to parse JSON: {e}") from e
        return await self.import_document(document, options)

    async def import_file(
        self,
        path: Union[str, Path],
        options: Optional[ImportOptions] = None
    ) -> ImportResult:
        """Read an export file and import it."""
        text = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        return await self.import_text(text, options)

    async def _merge(
        self,
        existing: List[Dict[str, Any]],
        incoming: List[Dict[str, Any]],
        options: ImportOptions,
        backup_key: str
    ) -> ImportResult:
        merged = {record["id"]: record for record in existing}
        conflicts = [record for record in incoming if record["id"] in merged]

        if not conflicts:
            self.repository.write_raw(existing + incoming)
            return ImportResult(success=True, backup_key=backup_key, imported=len(incoming))

        replace = await self._resolve_duplicates(len(conflicts), options)
        if replace:
            for record in incoming:
                merged[record["id"]] = record
        else:
            for record in incoming:
                merged.setdefault(record["id"], record)

        self.repository.write_raw(list(merged.values()))
        if replace:
            return ImportResult(
                success=True,
                backup_key=backup_key,
                imported=len(incoming) - len(conflicts),
                replaced=len(conflicts)
            )
        return ImportResult(
            success=True,
            backup_key=backup_key,
            imported=len(incoming) - len(conflicts),
            skipped=len(conflicts)
        )

    async def _resolve_duplicates(self, conflict_count: int, options: ImportOptions) -> bool:
        if options.replace_duplicates is not None:
            return bool(options.replace_duplicates)
        if options.on_duplicate_choice is None:
            return False
        try:
            decision = options.on_duplicate_choice(conflict_count)
            if inspect.isawaitable(decision):
                decision = await decision
        except Exception as e:
            logger.warning(f"Duplicate choice failed, skipping duplicates: {e}")
            return False
        return bool(decision)
