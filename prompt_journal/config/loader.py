"""
Configuration management and loading.

Handles where the journal is stored and where exports are written.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

from prompt_journal.storage.store import DEFAULT_BACKUP_PREFIX, DEFAULT_COLLECTION_KEY

DEFAULT_DB_PATH = "prompt_journal.db"
DEFAULT_EXPORT_DIRECTORY = "."


@dataclass(frozen=True)
class StorageConfig:
    """Where and under which keys the collection lives."""
    db_path: str = DEFAULT_DB_PATH
    collection_key: str = DEFAULT_COLLECTION_KEY
    backup_prefix: str = DEFAULT_BACKUP_PREFIX
    backup_retention: Optional[int] = None

    def __post_init__(self):
        """Validate storage values."""
        if not self.db_path:
            raise ValueError("db_path must be a non-empty string")
        if not self.collection_key:
            raise ValueError("collection_key must be a non-empty string")
        if not self.backup_prefix:
            raise ValueError("backup_prefix must be a non-empty string")
        if self.collection_key.startswith(self.backup_prefix):
            raise ValueError("collection_key must not start with backup_prefix")
        if self.backup_retention is not None and self.backup_retention < 1:
            raise ValueError("backup_retention must be >= 1")


@dataclass(frozen=True)
class ExportConfig:
    """Export destination."""
    directory: str = DEFAULT_EXPORT_DIRECTORY


@dataclass(frozen=True)
class JournalConfig:
    """Complete journal configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    export: ExportConfig = field(default_factory=ExportConfig)


def default_config() -> JournalConfig:
    """Configuration used when no config file is given."""
    return JournalConfig()


def load_journal_config(path: str) -> JournalConfig:
    """Load and validate journal configuration from YAML file.

    Every section is optional; omitted values take their defaults. Unknown
    keys are rejected so a typo never silently points the journal elsewhere.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated JournalConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Journal config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'storage', 'export'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    storage = _parse_storage_config(raw_config.get('storage') or {})
    export = _parse_export_config(raw_config.get('export') or {})

    return JournalConfig(storage=storage, export=export)


def _parse_storage_config(data: Dict) -> StorageConfig:
    """Parse and validate the storage section.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'storage' must be a dictionary")

    allowed_keys = {'db_path', 'collection_key', 'backup_prefix', 'backup_retention'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in storage: {unknown_keys}")

    for key in ('db_path', 'collection_key', 'backup_prefix'):
        if key in data and not isinstance(data[key], str):
            raise ValueError(f"'{key}' in storage must be a string")

    retention = data.get('backup_retention')
    if retention is not None and (not isinstance(retention, int) or isinstance(retention, bool)):
        raise ValueError("'backup_retention' in storage must be an integer")

    return StorageConfig(
        db_path=data.get('db_path', DEFAULT_DB_PATH),
        collection_key=data.get('collection_key', DEFAULT_COLLECTION_KEY),
        backup_prefix=data.get('backup_prefix', DEFAULT_BACKUP_PREFIX),
        backup_retention=retention
    )


def _parse_export_config(data: Dict) -> ExportConfig:
    """Parse and validate the export section.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'export' must be a dictionary")

    allowed_keys = {'directory'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in export: {unknown_keys}")

    directory = data.get('directory', DEFAULT_EXPORT_DIRECTORY)
    if not isinstance(directory, str) or not directory:
        raise ValueError("'directory' in export must be a non-empty string")

    return ExportConfig(directory=directory)
