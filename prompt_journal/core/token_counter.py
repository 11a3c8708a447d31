"""
Token estimation for prompt text and code.

Gives a rough min/max token range from word and character counts. No
tokenizer is involved, so the result is a heuristic band, not a count.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

# Words map to roughly 0.75 tokens, characters to roughly 0.25.
WORD_TOKEN_RATIO = 0.75
CHAR_TOKEN_RATIO = 0.25
CODE_MULTIPLIER = 1.3

HIGH_CONFIDENCE_BELOW = 1000
MEDIUM_CONFIDENCE_UP_TO = 5000

_CODEISH_PATTERN = re.compile(
    r"```|\bfunction\b|=>|\{|;|\(|\)\s*\{|console\.|import\s+|export\s+"
)


class Confidence(Enum):
    """How much to trust an estimate; shrinks as the text grows."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class TokenEstimate:
    """Estimated token range for a piece of content."""
    min: float
    max: float
    confidence: Confidence

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored ``{min, max, confidence}`` form."""
        return {"min": self.min, "max": self.max, "confidence": self.confidence.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenEstimate":
        """Build from the stored form. Expects already-validated data."""
        return cls(
            min=data["min"],
            max=data["max"],
            confidence=Confidence(data["confidence"])
        )

    @classmethod
    def zero(cls) -> "TokenEstimate":
        """Estimate used when an entry is saved without one."""
        return cls(min=0, max=0, confidence=Confidence.HIGH)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _utf16_length(text: str) -> int:
    # UTF-16 code units: characters outside the BMP count as two.
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


def detect_codeish(content: str) -> bool:
    """Guess whether content looks like source code."""
    if not isinstance(content, str):
        return False
    return bool(_CODEISH_PATTERN.search(content))


def estimate_tokens(text: str, is_code: bool = False) -> TokenEstimate:
    """Estimate the token range for a piece of text.

    Args:
        text: Content to estimate
        is_code: Apply the code multiplier to both bounds

    Returns:
        TokenEstimate with rounded, non-negative bounds

    Raises:
        ValueError: If text is not a string
    """
    if not isinstance(text, str):
        raise ValueError("text must be a string")

    trimmed = text.strip()
    word_count = len(trimmed.split()) if trimmed else 0
    char_count = _utf16_length(text)

    low = WORD_TOKEN_RATIO * word_count
    high = CHAR_TOKEN_RATIO * char_count

    if is_code:
        low *= CODE_MULTIPLIER
        high *= CODE_MULTIPLIER

    low = max(0, _round_half_up(low))
    high = max(0, _round_half_up(high))

    average = (low + high) / 2
    if average < HIGH_CONFIDENCE_BELOW:
        confidence = Confidence.HIGH
    elif average <= MEDIUM_CONFIDENCE_UP_TO:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    return TokenEstimate(min=low, max=high, confidence=confidence)
