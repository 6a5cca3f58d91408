"""
Crawl orchestrator: fetch -> extract -> filter -> score -> store -> monitor.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional

from .config import CrawlerConfig
from .extraction import extract_candidates
from .infra.browser import PlaywrightClient
from .infra.http import HttpClient
from .interfaces import FilterAgent
from .models import (
    CrawlerStats,
    CrawlResult,
    ExtractionMethod,
    ExtractionTarget,
    ProgressEvent,
    SemanticAnalysis,
)
from .monitoring import MonitoringSystem
from .scoring import FeatureScorer
from .semantic import SemanticAnalyzer
from .sinks import JsonFileReportSink
from .stealth import StealthController
from .storage import StorageEngine

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Top-level coordinator of the crawl pipeline.

    Collaborators passed in by the caller are treated as externally owned and
    are not closed by :meth:`close`; anything the orchestrator builds itself
    from ``config`` is.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        *,
        storage: Optional[StorageEngine] = None,
        monitoring: Optional[MonitoringSystem] = None,
        http: Optional[HttpClient] = None,
        browser: Optional[PlaywrightClient] = None,
        stealth: Optional[StealthController] = None,
        progress: Optional[asyncio.Queue] = None,
    ) -> None:
        self.config = config or CrawlerConfig()
        self.max_concurrent = self.config.max_concurrent

        self._owns_storage = storage is None
        self.storage = storage or StorageEngine(self.config.storage.db_path)
        self.monitoring = monitoring or MonitoringSystem(
            self.config.monitoring,
            report_sink=JsonFileReportSink(self.config.monitoring.reports_dir),
        )
        self.scorer = FeatureScorer() if self.config.enable_learning else None
        self.analyzer = SemanticAnalyzer() if self.config.enable_semantic else None
        self.stealth = stealth or StealthController()

        self._owns_http = http is None
        self._owns_browser = browser is None
        self.http = http
        self.browser = browser
        self.progress = progress

        self.filter_agents: List[FilterAgent] = []
        self.extraction_targets: List[ExtractionTarget] = []
        self.stats = CrawlerStats()

        logger.info(f"CrawlOrchestrator initialized with max_concurrent={self.max_concurrent}")

    # ------------------------------------------------------------------ #
    # Lifecycle
    async def initialize(self) -> None:
        """Acquire transports and storage; resources that already exist are kept."""
        if self.browser is None and self.config.browser.enabled:
            client = PlaywrightClient.from_config(self.config.browser)
            try:
                await client.start()
                self.browser = client
                logger.info("Browser initialized successfully")
            except Exception as e:
                logger.error(f"Browser initialization failed: {e}")
                try:
                    await client.stop()
                except Exception as stop_error:
                    logger.warning(f"Failed to stop half-started browser: {stop_error}")

        if self.http is None:
            try:
                self.http = HttpClient.from_config(self.config.http)
                logger.info("HTTP session initialized successfully")
            except Exception as e:
                logger.error(f"Session initialization failed: {e}")

        try:
            await self.storage.connect()
        except Exception as e:
            logger.error(f"Storage initialization failed: {e}")

    async def close(self) -> None:
        logger.info("Closing crawler resources...")
        await self.monitoring.drain()

        if self.browser is not None and self._owns_browser:
            await self.browser.stop()
            self.browser = None
        if self.http is not None and self._owns_http:
            await self.http.close()
            self.http = None
        if self._owns_storage:
            await self.storage.close()

    async def __aenter__(self) -> "CrawlOrchestrator":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Registration
    def add_filter_agent(self, agent: FilterAgent) -> None:
        self.filter_agents.append(agent)
        # sort() is stable: equal priorities keep insertion order
        self.filter_agents.sort(key=lambda a: a.priority, reverse=True)
        logger.info(f"Added filter agent: {agent.name} with priority {agent.priority}")

    def add_extraction_target(self, target: ExtractionTarget) -> None:
        self.extraction_targets.append(target)
        logger.info(f"Added extraction target for {target.data_type.value}")

    # ------------------------------------------------------------------ #
    # Fetching
    async def _fetch(self, url: str, method: ExtractionMethod) -> str:
        if method == ExtractionMethod.BROWSER and self.browser is not None:
            return await self._fetch_with_browser(url)
        return await self._fetch_with_session(url)

    async def _fetch_with_browser(self, url: str) -> str:
        page = await self.browser.new_page()
        try:
            await self.stealth.prepare_page(page)
            await page.goto(
                url,
                wait_until="networkidle",
                timeout=self.config.browser.navigation_timeout,
            )
            # Wait for dynamic content
            await asyncio.sleep(random.uniform(*self.config.browser.settle_delay))
            if self.config.browser.simulate_human:
                await self.stealth.simulate_human(page)
            return await page.content()
        finally:
            await page.close()

    async def _fetch_with_session(self, url: str) -> str:
        if self.http is None:
            raise RuntimeError("HTTP session not initialized")
        return await self.http.get_text(url)

    # ------------------------------------------------------------------ #
    # Per-candidate pipeline
    def _context_for(self, url: str, target: ExtractionTarget) -> Dict[str, Any]:
        return {
            "source_url": url,
            "data_type": target.data_type.value,
            "extraction_depth": 1,
            "source_reliability": self.config.source_reliability,
            "timestamp": time.time(),
        }

    async def _run_filter_chain(self, data: Any, context: Dict[str, Any]) -> Optional[float]:
        """Mean confidence of the active agents, or None on the first rejection."""
        confidences: List[float] = []
        for agent in self.filter_agents:
            if not agent.is_active:
                continue
            verdict = await agent.apply_filter(data, context)
            if not verdict.passed:
                return None
            confidences.append(verdict.confidence)

        if not confidences:
            return None
        return sum(confidences) / len(confidences)

    def _predict(self, data: Any, context: Dict[str, Any], confidence: float) -> float:
        if self.scorer is None:
            return confidence
        try:
            return (confidence + self.scorer.predict_quality(data, context)) / 2
        except Exception as e:
            logger.warning(f"Scorer prediction failed, keeping filter confidence: {e}")
            return confidence

    async def _evaluate_candidate(
        self, data: Any, context: Dict[str, Any], started: float
    ) -> Optional[CrawlResult]:
        confidence = await self._run_filter_chain(data, context)
        if confidence is None:
            return None

        confidence = self._predict(data, context, confidence)

        analysis: Optional[SemanticAnalysis] = None
        if self.analyzer is not None and isinstance(data, str):
            analysis = self.analyzer.analyze(data)
            confidence = (confidence + analysis.semantic_quality) / 2

        if confidence < self.config.min_confidence:
            return None

        semantic = (analysis or SemanticAnalysis.neutral()).model_dump()
        result = CrawlResult(
            data=data,
            confidence=confidence,
            metadata={**context, **semantic},
            extraction_time=time.perf_counter() - started,
            source_url=context["source_url"],
        )

        if analysis is not None:
            await self.storage.store_with_analysis(result, analysis)
        else:
            await self.storage.store_result(result)
        return result

    # ------------------------------------------------------------------ #
    # Public crawl API
    async def crawl_url(
        self, url: str, method: ExtractionMethod = ExtractionMethod.BROWSER
    ) -> List[CrawlResult]:
        method = ExtractionMethod(method)
        started = time.perf_counter()
        results: List[CrawlResult] = []

        try:
            logger.info(f"Crawling URL: {url} using {method.value}")
            content = await self._fetch(url, method)

            for target in self.extraction_targets:
                for data in extract_candidates(content, target, url):
                    context = self._context_for(url, target)
                    result = await self._evaluate_candidate(data, context, started)
                    if result is not None:
                        results.append(result)

            self.stats.pages_crawled += 1
            logger.info(f"Successfully crawled {url}: extracted {len(results)} items")
        except Exception as e:
            self.stats.errors_encountered += 1
            logger.error(f"Error crawling {url}: {e}")
        finally:
            self.stats.data_extracted += len(results)
            self.stats.total_processing_time += time.perf_counter() - started

        try:
            await self.monitoring.track_performance(await self.get_comprehensive_stats())
        except Exception as e:
            logger.error(f"Monitoring update failed for {url}: {e}")

        return results

    async def _crawl_with_jitter(self, url: str, method: ExtractionMethod) -> List[CrawlResult]:
        low, high = self.config.jitter_range
        if high > 0:
            await asyncio.sleep(random.uniform(low, high))
        return await self.crawl_url(url, method)

    async def _emit(self, event: ProgressEvent) -> None:
        if self.progress is not None:
            await self.progress.put(event)

    async def bulk_crawl(
        self, urls: List[str], method: ExtractionMethod = ExtractionMethod.BROWSER
    ) -> List[CrawlResult]:
        logger.info(f"Starting bulk crawl of {len(urls)} URLs")
        results: List[CrawlResult] = []
        completed = 0

        chunks = [urls[i:i + self.max_concurrent] for i in range(0, len(urls), self.max_concurrent)]
        for index, chunk in enumerate(chunks, start=1):
            logger.debug(f"Bulk crawl chunk {index}/{len(chunks)}: {len(chunk)} URLs")
            tasks = {
                asyncio.ensure_future(self._crawl_with_jitter(url, method)): url for url in chunk
            }

            pending = set(tasks)
            try:
                while pending:
                    done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                    for task in done:
                        completed += 1
                        url = tasks[task]
                        try:
                            url_results = task.result()
                        except Exception as e:
                            logger.error(f"Bulk crawl error for {url}: {e}")
                            await self._emit(ProgressEvent(
                                url=url, completed=completed, total=len(urls), error=str(e)
                            ))
                            continue
                        results.extend(url_results)
                        await self._emit(ProgressEvent(
                            url=url, completed=completed, total=len(urls), results=len(url_results)
                        ))
            finally:
                # children must not outlive a cancelled bulk crawl
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)

        logger.info(f"Bulk crawl completed: {len(results)} items extracted")
        return results

    # ------------------------------------------------------------------ #
    # Learning
    def add_user_feedback(self, data: Any, liked: bool, context: Optional[Dict[str, Any]] = None) -> None:
        context = context or {}
        for agent in self.filter_agents:
            try:
                agent.learn_from_feedback(data, liked, context)
            except Exception as e:
                logger.error(f"Agent {agent.name} failed to learn from feedback: {e}")

        if self.scorer is not None:
            self.scorer.train_from_feedback(data, context, liked)

        logger.info(f"User feedback processed: {'positive' if liked else 'negative'}")

    async def adapt_strategies(self) -> Dict[str, str]:
        """Re-derive every agent's strategy from its success rate and snapshot it."""
        strategies = {
            agent.name: agent.update_strategy(agent.success_rate).value
            for agent in self.filter_agents
        }
        await self.storage.record_learning_stats(a.get_stats() for a in self.filter_agents)
        return strategies

    # ------------------------------------------------------------------ #
    async def get_comprehensive_stats(self) -> CrawlerStats:
        snapshot = self.stats.model_copy(deep=True)
        snapshot.filter_agents = {agent.name: agent.get_stats() for agent in self.filter_agents}
        snapshot.ml_engine = self.scorer.get_stats() if self.scorer else None
        snapshot.semantic = self.analyzer.get_stats() if self.analyzer else None
        snapshot.storage = await self.storage.get_stats() if self.storage.db.connected else {}
        snapshot.monitoring = self.monitoring.get_stats()
        return snapshot
