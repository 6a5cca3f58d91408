"""
Text filter agent - length bounds, static and learned patterns, blacklist.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..interfaces import FilterAgent

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\b\w+\b")


class TextFilterAgent(FilterAgent):
    """Scores text candidates by how many known patterns they match.

    Each matching pattern (static or learned from positive feedback) adds
    0.2 to the confidence; with no patterns at all the agent falls back to
    a neutral 0.5. Anything matching a blacklisted pattern is rejected.
    """

    MATCH_WEIGHT = 0.2
    NEUTRAL_CONFIDENCE = 0.5

    def __init__(
        self,
        name: str,
        patterns: Optional[Iterable[str]] = None,
        min_length: int = 3,
        max_length: int = 500,
        **kwargs,
    ) -> None:
        super().__init__(name, **kwargs)
        self.patterns: List[str] = list(patterns or [])
        self.min_length = min_length
        self.max_length = max_length
        self.learned_patterns: Set[str] = set()
        self.blacklist_patterns: Set[str] = set()

        logger.info(f"TextFilterAgent initialized with {len(self.patterns)} patterns")

    @staticmethod
    def _search(pattern: str, data: str) -> bool:
        try:
            return re.search(pattern, data, re.IGNORECASE) is not None
        except re.error:
            logger.warning(f"Invalid regex pattern: {pattern}")
            return False

    def evaluate(self, data: Any, context: Dict[str, Any]) -> Tuple[bool, float]:
        if not isinstance(data, str):
            return False, 0.0

        if not self.min_length <= len(data) <= self.max_length:
            return False, 0.0

        all_patterns = self.patterns + sorted(self.learned_patterns)
        if all_patterns:
            matches = sum(1 for p in all_patterns if self._search(p, data))
            confidence = matches * self.MATCH_WEIGHT
        else:
            confidence = self.NEUTRAL_CONFIDENCE

        if any(self._search(p, data) for p in self.blacklist_patterns):
            return False, 0.0

        confidence = self.scale_for_strategy(confidence)
        return confidence >= self.adaptation_threshold, confidence

    def learn_from_feedback(self, data: Any, liked: bool, context: Dict[str, Any]) -> None:
        if not isinstance(data, str):
            return

        if liked:
            for word in _WORD.findall(data.lower()):
                if len(word) >= 3:
                    pattern = rf"\b{re.escape(word)}\b"
                    self.learned_patterns.add(pattern)
                    logger.debug(f"Learned positive pattern: {pattern}")
        else:
            pattern = rf"\b{re.escape(data.lower())}\b"
            self.blacklist_patterns.add(pattern)
            logger.debug(f"Added to blacklist: {pattern}")
