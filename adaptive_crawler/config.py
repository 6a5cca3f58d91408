"""
Configuration models and YAML loading.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import DataType, ExtractionMethod

logger = logging.getLogger(__name__)


class RetryPolicy(BaseModel):
    """Retry behaviour of the HTTP transport."""
    max_retries: int = 3
    backoff_factor: float = 2.0
    base_delay: float = 1.0
    max_delay: float = 60.0
    retry_on_status: List[int] = Field(default_factory=lambda: [429, 500, 502, 503, 504])


class HttpConfig(BaseModel):
    timeout: float = 30.0
    max_redirects: int = 5
    retry: RetryPolicy = Field(default_factory=RetryPolicy)


class BrowserConfig(BaseModel):
    enabled: bool = True
    headless: bool = True
    browser_type: str = "chromium"
    timeout: float = 30_000
    navigation_timeout: float = 30_000
    additional_args: List[str] = Field(default_factory=list)
    settle_delay: Tuple[float, float] = (1.0, 3.0)
    simulate_human: bool = True


class StorageConfig(BaseModel):
    db_path: str = "data/crawler_advanced.db"


class MonitoringConfig(BaseModel):
    reports_dir: str = "data/reports"
    max_alerts: int = 100
    max_samples: int = 1000
    window: int = 10
    report_every: int = 100
    thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "success_rate": 0.7,
            "avg_response_time": 10.0,
            "error_rate": 0.1,
            "semantic_quality": 0.6,
        }
    )


class CrawlerConfig(BaseModel):
    """Top-level orchestrator settings."""
    max_concurrent: int = Field(default=5, ge=1)
    enable_learning: bool = False
    enable_semantic: bool = False
    min_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    jitter_range: Tuple[float, float] = (1.0, 3.0)
    source_reliability: float = 0.7
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)


class TargetConfig(BaseModel):
    """YAML form of an extraction target; post-processors are referenced by name."""
    data_type: DataType
    selectors: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    post_processors: List[str] = Field(default_factory=list)


class AgentConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(alias="class")
    kwargs: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[int] = None
    adaptation_threshold: Optional[float] = None


class ScheduleConfig(BaseModel):
    cron: Optional[str] = None
    interval: Optional[Dict[str, int]] = None

    @model_validator(mode="after")
    def _one_trigger(self) -> "ScheduleConfig":
        if not self.cron and not self.interval:
            raise ValueError("schedule needs either 'cron' or 'interval'")
        return self


class CrawlJob(BaseModel):
    name: str
    urls: List[str]
    method: ExtractionMethod = ExtractionMethod.HTTP
    targets: List[TargetConfig] = Field(default_factory=list)
    agents: List[AgentConfig] = Field(default_factory=list)
    schedule: Optional[ScheduleConfig] = None


class AppConfig(BaseModel):
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    jobs: List[CrawlJob] = Field(default_factory=list)


def load_config(path: str = "config.yaml") -> AppConfig:
    """Load and validate configuration from a YAML file."""
    cfg_path = Path(path)
    if not cfg_path.exists():
        logger.warning(f"Config file not found: {path}, using defaults")
        return AppConfig()

    with cfg_path.open() as f:
        data = yaml.safe_load(f) or {}

    cfg = AppConfig.model_validate(data)
    logger.info(f"Loaded config from {path}: {len(cfg.jobs)} job(s)")
    return cfg
