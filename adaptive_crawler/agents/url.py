"""
URL filter agent - scheme, host allow-list and learned per-domain scores.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Tuple
from urllib.parse import urlsplit

from ..interfaces import FilterAgent

logger = logging.getLogger(__name__)


class URLFilterAgent(FilterAgent):
    """Accepts URLs with an allowed scheme and (optionally) an allowed host."""

    def __init__(
        self,
        name: str,
        allowed_domains: Optional[Iterable[str]] = None,
        allowed_schemes: Iterable[str] = ("http", "https"),
        **kwargs,
    ) -> None:
        super().__init__(name, **kwargs)
        self.allowed_domains = {d.lower() for d in (allowed_domains or [])}
        self.allowed_schemes = {s.lower() for s in allowed_schemes}
        self.domain_scores: Dict[str, float] = {}

        logger.info(f"URLFilterAgent initialized with {len(self.allowed_domains)} allowed domains")

    def evaluate(self, data: Any, context: Dict[str, Any]) -> Tuple[bool, float]:
        parts = urlsplit(data)  # raises on non-str / malformed input
        confidence = 0.0

        if parts.scheme.lower() not in self.allowed_schemes:
            return False, 0.0
        confidence += 0.3

        domain = (parts.hostname or "").lower()
        if not domain:
            return False, 0.0

        if self.allowed_domains and not any(a in domain for a in self.allowed_domains):
            return False, 0.0
        confidence += 0.4

        confidence += self.domain_scores.get(domain, 0.0) * 0.3
        return confidence >= self.adaptation_threshold, confidence

    def learn_from_feedback(self, data: Any, liked: bool, context: Dict[str, Any]) -> None:
        try:
            domain = (urlsplit(data).hostname or "").lower()
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f"Error learning from URL feedback: {e}")
            return
        if not domain:
            return

        adjustment = 0.1 if liked else -0.1
        score = max(-1.0, min(1.0, self.domain_scores.get(domain, 0.0) + adjustment))
        self.domain_scores[domain] = score
        logger.debug(f"Updated domain score for {domain}: {score:.2f}")
