"""
Storage errors.

Every failure surfaced by the persistence layer derives from JournalError
so callers can report it uniformly.
"""


class JournalError(Exception):
    """Base class for prompt journal storage failures."""


class ShapeError(JournalError):
    """Raised when an entry or export document is malformed."""


class UnsupportedVersionError(JournalError):
    """Raised when an export document has a version we cannot import."""
    def __init__(self, version: str, expected: str):
        super().__init__(f"Unsupported export version: {version}. Expected {expected}")
        self.version = version
        self.expected = expected


class NotFoundError(JournalError):
    """Raised when a prompt id or backup key does not exist."""


class CorruptStoreError(JournalError):
    """Raised when the stored collection cannot be parsed as a JSON array."""
