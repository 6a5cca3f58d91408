"""
Report sinks for monitoring output.
"""

import asyncio
import logging
from pathlib import Path

from .interfaces import ReportSink
from .models import PerformanceReport


logger = logging.getLogger(__name__)


class JsonFileReportSink(ReportSink):
    """Sink that writes each performance report to its own JSON file."""

    name = "JsonFileReportSink"

    def __init__(self, reports_dir: str = "data/reports"):
        self.reports_dir = Path(reports_dir)

    def _write(self, report: PerformanceReport) -> Path:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        stamp = report.timestamp.strftime("%Y%m%dT%H%M%S%f")
        path = self.reports_dir / f"performance_report_{stamp}.json"
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        return path

    async def handle(self, report: PerformanceReport) -> None:
        """Write the report off the event loop thread."""
        path = await asyncio.to_thread(self._write, report)
        logger.info(f"Performance report saved: {path}")
