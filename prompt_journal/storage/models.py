"""
Data models for storage layer.

Defines the journal entry as it is held in memory and its stored form.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from prompt_journal.core.token_counter import TokenEstimate

# Keys mapped to typed fields; anything else rides along in ``extra``.
_CORE_KEYS = ("id", "model", "createdAt", "updatedAt", "tokenEstimate")


@dataclass(frozen=True)
class PromptEntry:
    """One journal record.

    Fields the journal does not interpret (content, title, notes...) are kept
    verbatim in ``extra`` so that export and import never lose data. ``extra``
    takes part in equality but not in the hash.
    """
    id: str
    model: str
    created_at: str
    updated_at: str
    token_estimate: TokenEstimate
    rating: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PromptEntry":
        """Build an entry from its stored form. Expects validated data."""
        extra = {k: v for k, v in data.items() if k not in _CORE_KEYS}
        rating = extra.get("rating")
        if isinstance(rating, (int, float)) and not isinstance(rating, bool):
            del extra["rating"]
        else:
            rating = None
        return cls(
            id=data["id"],
            model=data["model"],
            created_at=data["createdAt"],
            updated_at=data["updatedAt"],
            token_estimate=TokenEstimate.from_dict(data["tokenEstimate"]),
            rating=rating,
            extra=extra
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored form (camelCase keys)."""
        data: Dict[str, Any] = {
            "id": self.id,
            "model": self.model,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "tokenEstimate": self.token_estimate.to_dict(),
        }
        if self.rating is not None:
            data["rating"] = self.rating
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data
