"""
Rolling-window health tracking, alerting and periodic performance reports.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from itertools import islice
from typing import Any, Deque, Dict, List, Optional, Set

from .config import MonitoringConfig
from .interfaces import ReportSink
from .models import (
    Alert,
    AlertLevel,
    CrawlerStats,
    PerformanceMetric,
    PerformanceReport,
    ReportSummary,
)

logger = logging.getLogger(__name__)

SUCCESS_RATE = "successRate"
ERROR_RATE = "errorRate"

_LOG_LEVELS = {
    AlertLevel.INFO: logging.INFO,
    AlertLevel.WARNING: logging.WARNING,
    AlertLevel.ERROR: logging.ERROR,
}


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class MonitoringSystem:
    """Consumes :class:`CrawlerStats` snapshots after every crawled URL.

    Each snapshot appends one sample to the ``successRate`` and ``errorRate``
    series, checks the last ``window`` samples against the configured
    thresholds and, every ``report_every`` observations, hands a
    :class:`PerformanceReport` to the report sink on a background task.
    """

    def __init__(
        self,
        config: Optional[MonitoringConfig] = None,
        report_sink: Optional[ReportSink] = None,
    ) -> None:
        self.config = config or MonitoringConfig()
        self.report_sink = report_sink
        self.thresholds = dict(self.config.thresholds)
        self.performance_metrics: Dict[str, Deque[PerformanceMetric]] = {}
        self.alerts: Deque[Alert] = deque(maxlen=self.config.max_alerts)
        self.observations = 0
        self.reports_generated = 0
        self._pending: Set[asyncio.Task] = set()
        logger.info("Monitoring system initialized")

    # ------------------------------------------------------------------ #
    async def track_performance(self, stats: CrawlerStats) -> None:
        try:
            self._analyze_trends(stats)
            self._detect_anomalies()
            self._maybe_report(stats)
        except Exception as e:
            logger.error(f"Performance tracking failed: {e}", exc_info=True)

    def _analyze_trends(self, stats: CrawlerStats) -> None:
        rates = [agent.get("success_rate", 0.0) for agent in stats.filter_agents.values()]
        self._add_metric(SUCCESS_RATE, _mean(rates))

        pages = stats.pages_crawled
        self._add_metric(ERROR_RATE, stats.errors_encountered / pages if pages > 0 else 0.0)
        self.observations += 1

    def _add_metric(self, name: str, value: float) -> None:
        series = self.performance_metrics.setdefault(
            name, deque(maxlen=self.config.max_samples)
        )
        series.append(PerformanceMetric(value=value))

    def _recent(self, name: str, n: int) -> List[float]:
        series = self.performance_metrics.get(name, ())
        start = max(0, len(series) - n)
        return [m.value for m in islice(series, start, None)]

    def _detect_anomalies(self) -> None:
        window = self.config.window

        recent = self._recent(SUCCESS_RATE, window)
        if len(recent) >= window:
            avg = _mean(recent)
            if avg < self.thresholds["success_rate"]:
                self.trigger_alert(f"Low success rate detected: {avg * 100:.1f}%", AlertLevel.WARNING)

        recent = self._recent(ERROR_RATE, window)
        if len(recent) >= window:
            avg = _mean(recent)
            if avg > self.thresholds["error_rate"]:
                self.trigger_alert(f"High error rate detected: {avg * 100:.1f}%", AlertLevel.ERROR)

    def trigger_alert(self, message: str, level: AlertLevel) -> Alert:
        alert = Alert(
            message=message,
            level=level,
            context={
                "active_alerts": len(self.alerts),
                "metrics_tracked": sorted(self.performance_metrics),
            },
        )
        self.alerts.append(alert)
        logger.log(_LOG_LEVELS[level], f"ALERT: {message}")
        return alert

    # ------------------------------------------------------------------ #
    def _maybe_report(self, stats: CrawlerStats) -> None:
        if self.observations % self.config.report_every != 0:
            return
        report = self.create_report(stats)
        self.reports_generated += 1
        if self.report_sink is None:
            logger.info("Performance report created (no sink configured)")
            return

        task = asyncio.get_running_loop().create_task(self._publish(report))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, report: PerformanceReport) -> None:
        try:
            await self.report_sink.handle(report)
        except Exception as e:
            logger.error(f"Report sink {self.report_sink.name} failed: {e}")

    async def drain(self) -> None:
        """Wait for in-flight report publications."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def create_report(self, stats: CrawlerStats) -> PerformanceReport:
        return PerformanceReport(
            summary=ReportSummary(
                total_pages=stats.pages_crawled,
                total_data=stats.data_extracted,
                avg_success_rate=self.avg_success_rate(),
                system_health=self.system_health(),
            ),
            agent_performance=dict(stats.filter_agents),
            recommendations=self.recommendations(stats),
        )

    def avg_success_rate(self) -> float:
        return _mean(self._recent(SUCCESS_RATE, self.config.max_samples))

    def system_health(self) -> float:
        indicators: List[float] = []
        avg_success = self.avg_success_rate()
        if avg_success > 0:
            indicators.append(avg_success)

        recent_errors = self._recent(ERROR_RATE, self.config.window)
        if recent_errors:
            indicators.append(1 - _mean(recent_errors))

        return _mean(indicators) if indicators else 0.7

    def recommendations(self, stats: CrawlerStats) -> List[str]:
        out: List[str] = []
        if self.avg_success_rate() < 0.5:
            out.append("Consider adjusting filter thresholds to improve success rate")
        if stats.errors_encountered > 10:
            out.append("High error rate detected - check network connectivity and target websites")
        per_page = stats.total_processing_time / max(1, stats.pages_crawled)
        if per_page > 30:
            out.append("High processing time per page - consider optimizing extraction targets")
        return out

    # ------------------------------------------------------------------ #
    def get_series(self, name: str) -> List[PerformanceMetric]:
        return list(self.performance_metrics.get(name, ()))

    def get_alerts(self) -> List[Alert]:
        return list(self.alerts)

    def clear_alerts(self) -> None:
        self.alerts.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_alerts": len(self.alerts),
            "metrics_tracked": sorted(self.performance_metrics),
            "observations": self.observations,
            "reports_generated": self.reports_generated,
            "avg_success_rate": self.avg_success_rate(),
            "system_health": self.system_health(),
            "recent_alerts": [a.model_dump(mode="json") for a in list(self.alerts)[-5:]],
        }
