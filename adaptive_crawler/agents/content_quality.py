"""
Content quality agent - weighted heuristic indicators with adaptive weights.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Tuple

from ..interfaces import FilterAgent

logger = logging.getLogger(__name__)

_VOWEL = re.compile(r"[aeiou]", re.IGNORECASE)
_REPEATED_RUN = re.compile(r"(.)\1{3,}")
_MEANINGFUL_WORD = re.compile(r"\b\w{3,}\b")
_FUNCTION_WORD = re.compile(r"\b(the|a|an|is|are|was|were|have|has|had)\b", re.IGNORECASE)


class ContentQualityAgent(FilterAgent):

    DEFAULT_WEIGHTS = {
        "has_vowels": 0.1,
        "balanced_length": 0.2,
        "no_excessive_repetition": 0.15,
        "proper_capitalization": 0.1,
        "contains_meaningful_words": 0.25,
        "grammatical_structure": 0.2,
    }

    def __init__(self, name: str, **kwargs) -> None:
        super().__init__(name, **kwargs)
        self.quality_indicators: Dict[str, float] = dict(self.DEFAULT_WEIGHTS)

    def indicators(self, data: str) -> Dict[str, bool]:
        return {
            "has_vowels": bool(_VOWEL.search(data)),
            "balanced_length": 5 <= len(data) <= 100,
            "no_excessive_repetition": not _REPEATED_RUN.search(data),
            "proper_capitalization": bool(data) and data[0] == data[0].upper() and data != data.upper(),
            "contains_meaningful_words": bool(_MEANINGFUL_WORD.search(data)),
            "grammatical_structure": bool(_FUNCTION_WORD.search(data)),
        }

    def evaluate(self, data: Any, context: Dict[str, Any]) -> Tuple[bool, float]:
        if not isinstance(data, str):
            return False, 0.0

        confidence = sum(
            self.quality_indicators[key] for key, hit in self.indicators(data).items() if hit
        )
        return confidence >= self.adaptation_threshold, confidence

    def learn_from_feedback(self, data: Any, liked: bool, context: Dict[str, Any]) -> None:
        if not isinstance(data, str):
            return

        # Weights move together; clamped, not normalised.
        adjustment = 0.05 if liked else -0.05
        for key, weight in self.quality_indicators.items():
            self.quality_indicators[key] = max(0.0, min(1.0, weight + adjustment))
