"""
Shape validation for entries and export documents.

Nothing read from an import file or handed to ``save`` is trusted until it
passes these checks. Validation never touches the store.
"""

import json
import math
from typing import Any, Mapping

from prompt_journal.core.metadata import is_canonical_timestamp
from prompt_journal.core.token_counter import Confidence

from .errors import ShapeError, UnsupportedVersionError

EXPORT_VERSION = "1.0.0"

_CONFIDENCE_VALUES = tuple(c.value for c in Confidence)


def is_number(value: Any) -> bool:
    """True for finite ints and floats. Booleans, NaN and infinities are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _reject_constant(name: str) -> None:
    raise ValueError(f"{name} is not valid JSON")


def loads_strict(text: str) -> Any:
    """Parse JSON, refusing the NaN and Infinity literals Python accepts by default.

    Raises:
        ValueError: If the text is not strict JSON
    """
    return json.loads(text, parse_constant=_reject_constant)


def _require_string(value: Any, name: str) -> None:
    if not isinstance(value, str):
        raise ShapeError(f"{name} must be a string")
    if not value:
        raise ShapeError(f"{name} is required")


def validate_token_estimate(estimate: Any) -> None:
    """Check a ``{min, max, confidence}`` mapping.

    Raises:
        ShapeError: If the estimate is missing or malformed
    """
    if not isinstance(estimate, Mapping):
        raise ShapeError("tokenEstimate is required")
    if not is_number(estimate.get("min")) or not is_number(estimate.get("max")):
        raise ShapeError("tokenEstimate.min and .max must be numbers")
    if estimate.get("confidence") not in _CONFIDENCE_VALUES:
        raise ShapeError(
            f"tokenEstimate.confidence must be one of {'|'.join(_CONFIDENCE_VALUES)}"
        )


def validate_entry(entry: Any) -> None:
    """Check that a raw entry has every required field in the right form.

    Args:
        entry: Mapping as stored or imported (camelCase keys)

    Raises:
        ShapeError: On the first problem found
    """
    if not isinstance(entry, Mapping):
        raise ShapeError("prompt must be an object")
    if not entry.get("id"):
        raise ShapeError("prompt.id is required")
    _require_string(entry.get("id"), "prompt.id")
    _require_string(entry.get("model"), "prompt.model")
    if not is_canonical_timestamp(entry.get("createdAt")):
        raise ShapeError("prompt.createdAt must be a canonical UTC timestamp with milliseconds")
    if not is_canonical_timestamp(entry.get("updatedAt")):
        raise ShapeError("prompt.updatedAt must be a canonical UTC timestamp with milliseconds")
    validate_token_estimate(entry.get("tokenEstimate"))
    rating = entry.get("rating")
    if isinstance(rating, float) and not math.isfinite(rating):
        raise ShapeError("prompt.rating must be a finite number")


def validate_export_document(document: Any) -> None:
    """Check an export document before anything is written.

    Raises:
        ShapeError: If the document or any contained entry is malformed
        UnsupportedVersionError: If the version is not EXPORT_VERSION
    """
    if not isinstance(document, Mapping):
        raise ShapeError("export document must be an object")
    version = document.get("version")
    if not version:
        raise ShapeError("export file missing version")
    if version != EXPORT_VERSION:
        raise UnsupportedVersionError(str(version), EXPORT_VERSION)

    prompts = document.get("prompts")
    if not isinstance(prompts, list):
        raise ShapeError("exported prompts array missing")
    for index, entry in enumerate(prompts):
        try:
            validate_entry(entry)
        except ShapeError as e:
            raise ShapeError(f"prompts[{index}]: {e}") from e
