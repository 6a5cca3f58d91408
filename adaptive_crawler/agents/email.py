"""
Email filter agent - pattern match plus trusted / blocked domain sets.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Set, Tuple

from ..interfaces import FilterAgent

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


def _domain_of(data: str) -> str:
    return data.split("@", 1)[1].strip().lower() if "@" in data else ""


class EmailFilterAgent(FilterAgent):

    def __init__(self, name: str, **kwargs) -> None:
        super().__init__(name, **kwargs)
        self.trusted_domains: Set[str] = set()
        self.blocked_domains: Set[str] = set()

    def evaluate(self, data: Any, context: Dict[str, Any]) -> Tuple[bool, float]:
        if not isinstance(data, str) or not EMAIL_PATTERN.search(data):
            return False, 0.0

        confidence = 0.5
        domain = _domain_of(data)
        if domain:
            if domain in self.blocked_domains:
                return False, 0.0
            if domain in self.trusted_domains:
                confidence += 0.3
            if "." in domain and len(domain.rsplit(".", 1)[1]) >= 2:
                confidence += 0.2

        return confidence >= self.adaptation_threshold, confidence

    def learn_from_feedback(self, data: Any, liked: bool, context: Dict[str, Any]) -> None:
        if not isinstance(data, str):
            return
        domain = _domain_of(data)
        if not domain:
            return

        if liked:
            self.trusted_domains.add(domain)
            self.blocked_domains.discard(domain)
        else:
            self.blocked_domains.add(domain)
            self.trusted_domains.discard(domain)
        logger.debug(f"{self.name}: {'trusted' if liked else 'blocked'} domain {domain}")
