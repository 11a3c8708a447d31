"""
Key-value store backends.

The journal only needs a string-keyed, string-valued store. Two backends are
provided: an in-memory dict and a single SQLite table.
"""

from typing import Dict, List, Optional, Protocol

from .db import get_connection

# Default key layout: one key for the collection, backups under a prefix.
DEFAULT_COLLECTION_KEY = "promptJournal.prompts"
DEFAULT_BACKUP_PREFIX = "promptJournal.backup."


class KeyValueStore(Protocol):
    """Minimal capability required by the repository and backup manager."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryKeyValueStore:
    """Ephemeral store kept in a dict, in insertion order."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"value for {key!r} must be a string")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


def initialize_schema(db_path: str = "prompt_journal.db") -> None:
    """Create the kv_store table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


class SQLiteKeyValueStore:
    """Persistent store backed by one SQLite table.

    Each call opens its own connection and commits before returning, so a
    single ``set`` is the unit of atomicity seen by callers.
    """

    def __init__(self, db_path: str = "prompt_journal.db"):
        """Initialize the store, creating the schema when needed.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        initialize_schema(db_path)

    def get(self, key: str) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"value for {key!r} must be a string")
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value)
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def keys(self) -> List[str]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("SELECT key FROM kv_store ORDER BY rowid")
            return [row[0] for row in cursor.fetchall()]
        finally:
            conn.close()
