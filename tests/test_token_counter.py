"""
Unit tests for token estimation.

Tests the word/character heuristic, the code multiplier and confidence bands.
"""

import pytest

from prompt_journal.core.token_counter import (
    Confidence,
    TokenEstimate,
    detect_codeish,
    estimate_tokens
)


class TestEstimateTokens:
    """Test the token range heuristic."""

    def test_plain_text_estimate(self):
        """Two words, eleven characters."""
        result = estimate_tokens("hello world")

        assert result.min == 2
        assert result.max == 3
        assert result.confidence == Confidence.HIGH

    def test_empty_text(self):
        """Empty text estimates to zero with high confidence."""
        result = estimate_tokens("")

        assert result == TokenEstimate(min=0, max=0, confidence=Confidence.HIGH)

    def test_whitespace_only_text_has_no_words(self):
        """Whitespace counts as characters but not words."""
        result = estimate_tokens("        ")

        assert result.min == 0
        assert result.max == 2

    def test_rounds_half_up(self):
        """4.5 rounds to 5, not to the even neighbour."""
        result = estimate_tokens("a b c d e f")

        assert result.min == 5

    def test_code_multiplier(self):
        """Code applies 1.3x to both bounds before rounding."""
        plain = estimate_tokens("a b c d")
        code = estimate_tokens("a b c d", is_code=True)

        assert plain.min == 3
        assert plain.max == 2
        assert code.min == 4
        assert code.max == 2

    def test_medium_confidence(self):
        """Averages between 1000 and 5000 are medium confidence."""
        result = estimate_tokens("word " * 2000)

        assert result.min == 1500
        assert result.max == 2500
        assert result.confidence == Confidence.MEDIUM

    def test_low_confidence(self):
        """Averages above 5000 are low confidence."""
        result = estimate_tokens("word " * 10000)

        assert result.confidence == Confidence.LOW

    def test_astral_characters_count_as_two(self):
        """An emoji is two UTF-16 code units, so 2 * 0.25 rounds up to 1."""
        result = estimate_tokens("\U0001F600")

        assert result.min == 1
        assert result.max == 1

    def test_non_string_rejected(self):
        """Only strings can be estimated."""
        with pytest.raises(ValueError, match="text must be a string"):
            estimate_tokens(None)


class TestTokenEstimate:
    """Test the estimate value object."""

    def test_to_dict(self):
        """Stored form uses the plain confidence string."""
        estimate = TokenEstimate(min=1, max=4, confidence=Confidence.MEDIUM)

        assert estimate.to_dict() == {"min": 1, "max": 4, "confidence": "medium"}

    def test_from_dict(self):
        """Stored form converts back to the value object."""
        estimate = TokenEstimate.from_dict({"min": 10, "max": 20, "confidence": "low"})

        assert estimate == TokenEstimate(min=10, max=20, confidence=Confidence.LOW)

    def test_zero(self):
        """Default estimate for entries saved without one."""
        assert TokenEstimate.zero().to_dict() == {"min": 0, "max": 0, "confidence": "high"}


class TestDetectCodeish:
    """Test the code detection heuristic."""

    def test_function_keyword(self):
        assert detect_codeish("function add(a, b) { return a + b; }")

    def test_arrow_function(self):
        assert detect_codeish("const f = x => x * 2")

    def test_fenced_block(self):
        assert detect_codeish("Here:\n```\nprint('hi')\n```")

    def test_import_statement(self):
        assert detect_codeish("import numpy as np")

    def test_plain_prose(self):
        assert not detect_codeish("Summarize this article in three bullet points")

    def test_non_string(self):
        assert not detect_codeish(42)
