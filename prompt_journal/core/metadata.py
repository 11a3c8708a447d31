"""
Metadata tracking for journal entries.

Timestamps are kept in one canonical form everywhere: UTC, millisecond
precision, trailing ``Z`` (``2024-01-01T12:00:00.000Z``).
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from .token_counter import detect_codeish, estimate_tokens

MAX_MODEL_NAME_LENGTH = 100

_CANONICAL_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Render a datetime in canonical form. Naive values are taken as UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        f".{moment.microsecond // 1000:03d}Z"
    )


def parse_timestamp(value: str) -> datetime:
    """Parse a canonical timestamp into an aware UTC datetime.

    Raises:
        ValueError: If value is not canonical
    """
    if not is_canonical_timestamp(value):
        raise ValueError(f"not a canonical timestamp: {value!r}")
    parsed = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ")
    return parsed.replace(tzinfo=timezone.utc)


def is_canonical_timestamp(value: Any) -> bool:
    """True only if value re-formats to exactly the same string."""
    if not isinstance(value, str) or not _CANONICAL_PATTERN.match(value):
        return False
    try:
        parsed = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ")
    except ValueError:
        return False
    return format_timestamp(parsed) == value


def utc_now_iso() -> str:
    return format_timestamp(utc_now())


def next_millisecond(value: str) -> str:
    """Canonical timestamp one millisecond after value."""
    return format_timestamp(parse_timestamp(value) + timedelta(milliseconds=1))


def validate_model_name(name: Any) -> None:
    """Check a model name is a non-empty string of reasonable length.

    Raises:
        ValueError: If the name is invalid
    """
    if not isinstance(name, str):
        raise ValueError("model_name must be a string")
    if not name.strip():
        raise ValueError("model_name must be a non-empty string")
    if len(name) > MAX_MODEL_NAME_LENGTH:
        raise ValueError(f"model_name must be at most {MAX_MODEL_NAME_LENGTH} characters")


def track_model(model_name: str, content: str, is_code: Optional[bool] = None) -> Dict[str, Any]:
    """Build metadata for new content attributed to a model.

    Args:
        model_name: Name of the model that produced or received the content
        content: Prompt or response text
        is_code: Force code handling; detected from content when None

    Returns:
        Dict with model, createdAt, updatedAt and tokenEstimate

    Raises:
        ValueError: If model_name or content is invalid
    """
    validate_model_name(model_name)
    if not isinstance(content, str):
        raise ValueError("content must be a string")

    if is_code is None:
        is_code = detect_codeish(content)
    created_at = utc_now_iso()

    return {
        "model": model_name,
        "createdAt": created_at,
        "updatedAt": created_at,
        "tokenEstimate": estimate_tokens(content, is_code).to_dict(),
    }


def update_timestamps(metadata: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of metadata with updatedAt set to now.

    Raises:
        ValueError: If createdAt is missing, malformed or in the future
    """
    if not isinstance(metadata, Mapping):
        raise ValueError("metadata must be a mapping")

    created_at = metadata.get("createdAt")
    if not is_canonical_timestamp(created_at):
        raise ValueError("metadata.createdAt must be a canonical UTC timestamp with milliseconds")

    now = utc_now()
    if format_timestamp(now) < created_at:
        raise ValueError("updatedAt must be greater than or equal to createdAt")

    updated = dict(metadata)
    updated["updatedAt"] = format_timestamp(now)
    return updated
