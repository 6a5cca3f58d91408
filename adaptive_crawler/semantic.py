"""
Heuristic semantic-quality analysis of extracted text.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from .models import SemanticAnalysis

logger = logging.getLogger(__name__)

TRANSITION_WORDS = (
    "however",
    "therefore",
    "moreover",
    "furthermore",
    "consequently",
    "nevertheless",
    "additionally",
    "meanwhile",
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_CAPITALIZED = re.compile(r"\b[A-Z][a-z]+\b")
_TERMINAL = re.compile(r"[.!?]")
_AUX_VERB = re.compile(r"\b(is|are|was|were|have|has|had|do|does|did)\b", re.IGNORECASE)
_REPEATED_CHUNK = re.compile(r"(.{3,})\1{3,}")
_VOWEL = re.compile(r"[aeiou]", re.IGNORECASE)
_SPECIAL = re.compile(r"[^\w\s]")


class SemanticAnalyzer:
    """Blends coherence, context relevance and (inverse) anomaly level."""

    def __init__(self) -> None:
        self.analyses = 0
        self.fallbacks = 0
        logger.info("Semantic analyzer initialized")

    def analyze(self, text: Any) -> SemanticAnalysis:
        if not isinstance(text, str):
            self.fallbacks += 1
            return SemanticAnalysis.neutral()

        try:
            coherence = self.coherence(text)
            context = self.context_relevance(text)
            anomaly = self.anomaly_level(text)
        except Exception as e:
            logger.error(f"Semantic analysis error: {e}")
            self.fallbacks += 1
            return SemanticAnalysis.neutral()

        self.analyses += 1
        return SemanticAnalysis(
            semantic_quality=0.4 * coherence + 0.3 * context + 0.3 * (1 - anomaly),
            coherence=coherence,
            context_relevance=context,
            anomaly_level=anomaly,
        )

    @staticmethod
    def coherence(text: str) -> float:
        sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
        if len(sentences) < 2:
            return 0.5

        linked = sum(
            1 for s in sentences if any(word in s.lower() for word in TRANSITION_WORDS)
        )
        return min(1.0, linked / len(sentences))

    @staticmethod
    def context_relevance(text: str) -> float:
        words = text.split()
        indicators = (
            bool(_CAPITALIZED.search(text)),                     # entities
            bool(_TERMINAL.search(text)),                        # sentence structure
            len(words) / max(1, len(text)) > 0.1,                # keyword density
            len(set(words)) / max(1, len(words)) > 0.5,          # lexical diversity
            bool(_AUX_VERB.search(text)),                        # verbs
            bool(_CAPITALIZED.search(text)),                     # proper nouns
        )
        return sum(indicators) / len(indicators)

    @staticmethod
    def anomaly_level(text: str) -> float:
        length = len(text)
        indicators = (
            bool(_REPEATED_CHUNK.search(text)),
            length < 10,
            length > 10_000,
            not _VOWEL.search(text),
            text == text.upper() and length > 10,
            length > 0 and len(_SPECIAL.findall(text)) / length > 0.3,
        )
        return min(1.0, sum(indicators) / len(indicators))

    def get_stats(self) -> Dict[str, Any]:
        return {"analyses": self.analyses, "fallbacks": self.fallbacks}
