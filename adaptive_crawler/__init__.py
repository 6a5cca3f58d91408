"""
Adaptive web crawler: an extraction pipeline gated by a chain of
self-tuning filter agents, with optional learned scoring, semantic
analysis, SQLite persistence and health monitoring.
"""

from .config import AppConfig, CrawlerConfig, CrawlJob, load_config  # noqa: F401
from .models import CrawlResult, DataType, ExtractionMethod, ExtractionTarget  # noqa: F401
from .orchestrator import CrawlOrchestrator  # noqa: F401
