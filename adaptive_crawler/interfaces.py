"""
Core interfaces for the adaptive crawler.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from .models import AgentMetrics, FilterResult, PerformanceReport, StrategyType

logger = logging.getLogger(__name__)


class FilterAgent(ABC):
    """Base class for the agents of the filter chain.

    Subclasses implement :meth:`evaluate` and :meth:`learn_from_feedback`.
    :meth:`apply_filter` wraps ``evaluate`` so that bookkeeping happens
    exactly once per call and no exception ever leaves the agent: a
    candidate the agent cannot handle is simply rejected with confidence 0.
    """

    def __init__(
        self,
        name: str,
        priority: int = 1,
        adaptation_threshold: float = 0.7,
    ) -> None:
        self.name = name
        self.priority = priority
        self.strategy = StrategyType.BALANCED
        self.metrics = AgentMetrics()
        self.is_active = True
        self.adaptation_threshold = adaptation_threshold

        logger.info(f"Initialized filter agent: {name} with priority {priority}")

    # ------------------------------------------------------------------ #
    @abstractmethod
    def evaluate(self, data: Any, context: Dict[str, Any]) -> Tuple[bool, float]:
        """Return ``(passed, confidence)`` for one candidate."""
        ...

    @abstractmethod
    def learn_from_feedback(self, data: Any, liked: bool, context: Dict[str, Any]) -> None:
        """Adjust internal state from user feedback on a candidate."""
        ...

    # ------------------------------------------------------------------ #
    async def apply_filter(self, data: Any, context: Dict[str, Any]) -> FilterResult:
        start = time.perf_counter()
        try:
            passed, confidence = self.evaluate(data, context)
        except Exception as e:
            logger.debug(f"{self.name}: rejecting malformed candidate: {e}")
            passed, confidence = False, 0.0

        confidence = max(0.0, min(1.0, confidence))
        self._record(passed, confidence, time.perf_counter() - start)
        return FilterResult(passed=passed, confidence=confidence)

    def _record(self, passed: bool, confidence: float, elapsed: float) -> None:
        m = self.metrics
        m.avg_processing_time = (m.avg_processing_time * m.total_processed + elapsed) / (
            m.total_processed + 1
        )
        m.total_processed += 1
        if passed:
            m.successful_extractions += 1
        else:
            m.failed_extractions += 1
        m.confidence_scores.append(confidence)
        m.last_updated = datetime.now(tz=timezone.utc)

    def scale_for_strategy(self, confidence: float) -> float:
        if self.strategy == StrategyType.AGGRESSIVE:
            return confidence * 1.5
        if self.strategy == StrategyType.STEALTH:
            return confidence * 0.8
        return confidence

    # ------------------------------------------------------------------ #
    def update_strategy(self, success_rate: float) -> StrategyType:
        if success_rate < 0.3:
            new = StrategyType.AGGRESSIVE
        elif success_rate < 0.6:
            new = StrategyType.BALANCED
        elif success_rate > 0.8:
            new = StrategyType.STEALTH
        else:
            new = StrategyType.ADAPTIVE

        if new != self.strategy:
            logger.info(f"{self.name}: Switching to {new.name} strategy")
        self.strategy = new
        return new

    @property
    def success_rate(self) -> float:
        if self.metrics.total_processed == 0:
            return 0.0
        return self.metrics.successful_extractions / self.metrics.total_processed

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "priority": self.priority,
            "strategy": self.strategy.value,
            "total_processed": self.metrics.total_processed,
            "successful_extractions": self.metrics.successful_extractions,
            "failed_extractions": self.metrics.failed_extractions,
            "success_rate": self.success_rate,
            "avg_processing_time": self.metrics.avg_processing_time,
            "is_active": self.is_active,
            "adaptation_threshold": self.adaptation_threshold,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} priority={self.priority}>"


class ReportSink(ABC):
    """Destination for performance reports produced by monitoring."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this sink."""
        pass

    @abstractmethod
    async def handle(self, report: PerformanceReport) -> None:
        """Persist or forward one report."""
        pass
