"""
Core data models for the adaptive crawler.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class DataType(str, Enum):
    TEXT = "text"
    URL = "url"
    EMAIL = "email"
    PHONE = "phone"
    IMAGE_URL = "image_url"
    JSON = "json"
    CUSTOM = "custom"


class StrategyType(str, Enum):
    AGGRESSIVE = "aggressive"
    BALANCED = "balanced"
    STEALTH = "stealth"
    ADAPTIVE = "adaptive"


class ExtractionMethod(str, Enum):
    BROWSER = "browser"
    HTTP = "http"


class AlertLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class ExtractionTarget(BaseModel):
    """What to pull out of a fetched page and how to clean it up."""
    model_config = ConfigDict(frozen=True)

    data_type: DataType
    selectors: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    post_processors: List[Callable[[Any], Any]] = Field(default_factory=list)


class FilterResult(BaseModel):
    """Verdict of one agent for one candidate."""
    model_config = ConfigDict(frozen=True)

    passed: bool
    confidence: float = Field(ge=0.0, le=1.0)


class AgentMetrics(BaseModel):
    """Per-agent counters, mutated only by the owning agent."""
    total_processed: int = 0
    successful_extractions: int = 0
    failed_extractions: int = 0
    avg_processing_time: float = 0.0
    confidence_scores: Deque[float] = Field(default_factory=lambda: deque(maxlen=100))
    last_updated: datetime = Field(default_factory=_utcnow)


class SemanticAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    semantic_quality: float
    coherence: float
    context_relevance: float
    anomaly_level: float

    @classmethod
    def neutral(cls) -> "SemanticAnalysis":
        return cls(
            semantic_quality=0.5,
            coherence=0.5,
            context_relevance=0.5,
            anomaly_level=0.5,
        )


class CrawlResult(BaseModel):
    """A candidate that survived the whole filter chain."""
    model_config = ConfigDict(frozen=True)

    data: Any
    confidence: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    extraction_time: float
    source_url: str


class CrawlerStats(BaseModel):
    """Process-wide counters plus each component's self-reported stats."""
    pages_crawled: int = 0
    data_extracted: int = 0
    errors_encountered: int = 0
    total_processing_time: float = 0.0
    filter_agents: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    ml_engine: Optional[Dict[str, Any]] = None
    semantic: Optional[Dict[str, Any]] = None
    storage: Dict[str, Any] = Field(default_factory=dict)
    monitoring: Dict[str, Any] = Field(default_factory=dict)


class StoredResult(BaseModel):
    """One persisted row of the ``crawl_results`` table."""
    id: Optional[int] = None
    url: str
    data: str
    data_type: str
    confidence: float
    semantic_quality: Optional[float] = None
    coherence_score: Optional[float] = None
    context_score: Optional[float] = None
    anomaly_score: Optional[float] = None
    extraction_time: Optional[float] = None
    timestamp: Optional[str] = None
    metadata: Optional[str] = None
    vector_id: Optional[int] = None


class Alert(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    message: str
    level: AlertLevel
    context: Dict[str, Any] = Field(default_factory=dict)


class PerformanceMetric(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    value: float


class ReportSummary(BaseModel):
    total_pages: int
    total_data: int
    avg_success_rate: float
    system_health: float


class PerformanceReport(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    summary: ReportSummary
    agent_performance: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)


class ProgressEvent(BaseModel):
    """Emitted once per finished URL during a bulk crawl."""
    url: str
    completed: int
    total: int
    results: int = 0
    error: Optional[str] = None
