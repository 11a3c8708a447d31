"""
Unit tests for backup management.
"""

from datetime import datetime, timedelta, timezone

import pytest

from prompt_journal.storage.backup import BackupInfo, BackupManager
from prompt_journal.storage.errors import NotFoundError
from prompt_journal.storage.store import (
    DEFAULT_BACKUP_PREFIX,
    DEFAULT_COLLECTION_KEY,
    MemoryKeyValueStore
)

START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Clock that advances one second per call."""

    def __init__(self, start=START):
        self.current = start

    def __call__(self):
        value = self.current
        self.current += timedelta(seconds=1)
        return value


class TestBackupCreate:
    """Test taking snapshots."""

    def setup_method(self):
        self.store = MemoryKeyValueStore()

    def test_create_on_empty_store(self):
        manager = BackupManager(self.store, clock=lambda: START)

        key = manager.create()

        assert key == DEFAULT_BACKUP_PREFIX + "2024-01-01T12:00:00.000Z"
        assert self.store.get(key) == "[]"

    def test_create_copies_raw_value(self):
        self.store.set(DEFAULT_COLLECTION_KEY, '[{"id": "p_1"}]')
        manager = BackupManager(self.store, clock=lambda: START)

        key = manager.create()

        assert self.store.get(key) == '[{"id": "p_1"}]'

    def test_same_millisecond_does_not_overwrite(self):
        manager = BackupManager(self.store, clock=lambda: START)

        first = manager.create()
        self.store.set(DEFAULT_COLLECTION_KEY, '["changed"]')
        second = manager.create()

        assert first != second
        assert second == DEFAULT_BACKUP_PREFIX + "2024-01-01T12:00:00.001Z"
        assert self.store.get(first) == "[]"
        assert self.store.get(second) == '["changed"]'

    def test_custom_keys(self):
        self.store.set("journal", "[1]")
        manager = BackupManager(self.store, collection_key="journal", prefix="bk:", clock=lambda: START)

        key = manager.create()

        assert key == "bk:2024-01-01T12:00:00.000Z"
        assert self.store.get(key) == "[1]"


class TestBackupListRestoreDelete:
    """Test listing, restoring and deleting snapshots."""

    def setup_method(self):
        self.store = MemoryKeyValueStore()
        self.manager = BackupManager(self.store, clock=SteppingClock())

    def test_list_newest_first(self):
        keys = [self.manager.create() for _ in range(3)]
        self.store.set("unrelated", "x")

        items = self.manager.list()

        assert [item.key for item in items] == list(reversed(keys))
        assert items[0] == BackupInfo(
            key=DEFAULT_BACKUP_PREFIX + "2024-01-01T12:00:02.000Z",
            timestamp="2024-01-01T12:00:02.000Z"
        )

    def test_list_empty(self):
        assert self.manager.list() == []

    def test_restore_overwrites_collection(self):
        self.store.set(DEFAULT_COLLECTION_KEY, '["old"]')
        key = self.manager.create()
        self.store.set(DEFAULT_COLLECTION_KEY, '["new"]')

        self.manager.restore(key)

        assert self.store.get(DEFAULT_COLLECTION_KEY) == '["old"]'

    def test_restore_is_verbatim(self):
        """Corrupt snapshots are restored as they are."""
        self.store.set(DEFAULT_BACKUP_PREFIX + "2024-01-01T00:00:00.000Z", "not json")

        self.manager.restore(DEFAULT_BACKUP_PREFIX + "2024-01-01T00:00:00.000Z")

        assert self.store.get(DEFAULT_COLLECTION_KEY) == "not json"

    def test_restore_unknown_key(self):
        with pytest.raises(NotFoundError, match="backup not found"):
            self.manager.restore(DEFAULT_BACKUP_PREFIX + "missing")

        assert self.store.get(DEFAULT_COLLECTION_KEY) is None

    def test_delete(self):
        key = self.manager.create()

        self.manager.delete(key)
        self.manager.delete(key)

        assert self.manager.list() == []

    def test_prune_keeps_newest(self):
        keys = [self.manager.create() for _ in range(4)]

        removed = self.manager.prune(2)

        assert removed == [keys[1], keys[0]]
        assert [item.key for item in self.manager.list()] == [keys[3], keys[2]]

    def test_prune_disabled(self):
        self.manager.create()

        assert self.manager.prune(None) == []
        assert len(self.manager.list()) == 1

    def test_prune_negative(self):
        with pytest.raises(ValueError, match="keep must be >= 0"):
            self.manager.prune(-1)
