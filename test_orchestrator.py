#!/usr/bin/env python3
"""Tests for the crawl orchestrator with fake transports."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from adaptive_crawler.agents import ContentQualityAgent, EmailFilterAgent, URLFilterAgent
from adaptive_crawler.config import BrowserConfig, CrawlerConfig
from adaptive_crawler.infra.browser import PlaywrightClient
from adaptive_crawler.models import DataType, ExtractionMethod, ExtractionTarget, ProgressEvent
from adaptive_crawler.monitoring import MonitoringSystem
from adaptive_crawler.orchestrator import CrawlOrchestrator


def page_with(*emails):
    body = " ".join(f"<p>Write to {e}</p>" for e in emails)
    return f"<html><body>{body}</body></html>"


PAGES = {
    "ok1": page_with("alice@example.com"),
    "ok2": page_with("bob@example.org", "carol@example.net"),
}


async def fake_get_text(url, **kwargs):
    if url not in PAGES:
        raise ConnectionError(f"cannot reach {url}")
    return PAGES[url]


def crawler_config(tmp_path, **overrides):
    values = {
        "max_concurrent": 3,
        "jitter_range": (0.0, 0.0),
        "browser": BrowserConfig(enabled=False, settle_delay=(0.0, 0.0)),
    }
    values.update(overrides)
    cfg = CrawlerConfig(**values)
    cfg.storage.db_path = str(tmp_path / "crawler.db")
    return cfg


@pytest_asyncio.fixture
async def orchestrator(tmp_path):
    http = MagicMock()
    http.get_text = AsyncMock(side_effect=fake_get_text)
    orch = CrawlOrchestrator(crawler_config(tmp_path), http=http, monitoring=MonitoringSystem())
    orch.add_filter_agent(EmailFilterAgent("emails"))
    orch.add_extraction_target(ExtractionTarget(data_type=DataType.EMAIL))
    await orch.initialize()
    yield orch
    await orch.close()


class TestCrawlUrl:

    @pytest.mark.asyncio
    async def test_extracts_filters_and_stores(self, orchestrator):
        results = await orchestrator.crawl_url("ok2", ExtractionMethod.HTTP)

        assert [r.data for r in results] == ["bob@example.org", "carol@example.net"]
        for r in results:
            assert r.source_url == "ok2"
            assert 0.0 <= r.confidence <= 1.0
            assert r.metadata["data_type"] == "email"
            assert r.extraction_time >= 0.0

        assert orchestrator.stats.pages_crawled == 1
        assert orchestrator.stats.data_extracted == 2
        assert len(await orchestrator.storage.get_results()) == 2

    @pytest.mark.asyncio
    async def test_transport_failure_is_counted(self, orchestrator):
        assert await orchestrator.crawl_url("bad", ExtractionMethod.HTTP) == []
        assert orchestrator.stats.errors_encountered == 1
        assert orchestrator.stats.pages_crawled == 0
        assert orchestrator.monitoring.observations == 1

    @pytest.mark.asyncio
    async def test_browser_method_falls_back_to_http(self, orchestrator):
        results = await orchestrator.crawl_url("ok1", ExtractionMethod.BROWSER)
        assert [r.data for r in results] == ["alice@example.com"]

    @pytest.mark.asyncio
    async def test_min_confidence_drops_results(self, tmp_path):
        http = MagicMock()
        http.get_text = AsyncMock(side_effect=fake_get_text)
        orch = CrawlOrchestrator(
            crawler_config(tmp_path, min_confidence=0.9), http=http, monitoring=MonitoringSystem()
        )
        orch.add_filter_agent(EmailFilterAgent("emails"))
        orch.add_extraction_target(ExtractionTarget(data_type=DataType.EMAIL))
        await orch.initialize()
        try:
            assert await orch.crawl_url("ok1", ExtractionMethod.HTTP) == []
            assert orch.stats.pages_crawled == 1
        finally:
            await orch.close()

    @pytest.mark.asyncio
    async def test_no_active_agents_produces_nothing(self, orchestrator):
        orchestrator.filter_agents[0].is_active = False
        assert await orchestrator.crawl_url("ok1", ExtractionMethod.HTTP) == []


class TestFilterChain:

    def test_agents_sorted_by_priority_stably(self, tmp_path):
        orch = CrawlOrchestrator(crawler_config(tmp_path), monitoring=MonitoringSystem())
        low = ContentQualityAgent("low", priority=1)
        first_high = URLFilterAgent("first_high", priority=5)
        second_high = EmailFilterAgent("second_high", priority=5)
        for agent in (low, first_high, second_high):
            orch.add_filter_agent(agent)
        assert [a.name for a in orch.filter_agents] == ["first_high", "second_high", "low"]

    @pytest.mark.asyncio
    async def test_rejection_short_circuits_chain(self, tmp_path):
        orch = CrawlOrchestrator(crawler_config(tmp_path), monitoring=MonitoringSystem())
        url_agent = URLFilterAgent("urls", allowed_schemes=["https"], priority=2)
        quality = ContentQualityAgent("quality", priority=1)
        orch.add_filter_agent(url_agent)
        orch.add_filter_agent(quality)

        context = {"source_url": "https://x.com", "data_type": "url"}
        assert await orch._evaluate_candidate("http://x.com", context, 0.0) is None
        assert url_agent.metrics.failed_extractions == 1
        assert quality.metrics.total_processed == 0

    @pytest.mark.asyncio
    async def test_confidence_is_mean_of_active_agents(self, tmp_path):
        orch = CrawlOrchestrator(crawler_config(tmp_path), monitoring=MonitoringSystem())
        orch.storage = MagicMock()
        orch.storage.store_result = AsyncMock(return_value=True)
        orch.add_filter_agent(URLFilterAgent("urls", priority=2))
        orch.add_filter_agent(ContentQualityAgent("quality", priority=1, adaptation_threshold=0.0))

        context = {"source_url": "https://x.com", "data_type": "url"}
        result = await orch._evaluate_candidate("https://example.com/page", context, 0.0)

        url_conf = orch.filter_agents[0].metrics.confidence_scores[-1]
        quality_conf = orch.filter_agents[1].metrics.confidence_scores[-1]
        assert result.confidence == pytest.approx((url_conf + quality_conf) / 2)
        orch.storage.store_result.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_persistence_failure_still_returns_result(self, tmp_path):
        orch = CrawlOrchestrator(crawler_config(tmp_path), monitoring=MonitoringSystem())
        orch.storage = MagicMock()
        orch.storage.store_result = AsyncMock(return_value=False)
        orch.add_filter_agent(EmailFilterAgent("emails"))

        context = {"source_url": "https://x.com", "data_type": "email"}
        assert await orch._evaluate_candidate("a@example.com", context, 0.0) is not None


class TestBulkCrawl:

    @pytest.mark.asyncio
    async def test_failing_url_is_isolated(self, orchestrator):
        results = await orchestrator.bulk_crawl(["ok1", "bad", "ok2"], ExtractionMethod.HTTP)

        assert {r.source_url for r in results} == {"ok1", "ok2"}
        assert len(results) == 3
        assert orchestrator.stats.errors_encountered == 1
        assert orchestrator.stats.pages_crawled == 2

    @pytest.mark.asyncio
    async def test_urls_run_in_sequential_chunks(self, tmp_path):
        orch = CrawlOrchestrator(
            crawler_config(tmp_path, max_concurrent=2), monitoring=MonitoringSystem()
        )
        events = []

        async def fake_crawl(url, method):
            events.append(("start", url))
            await asyncio.sleep(0.01)
            events.append(("end", url))
            if url == "u1":
                raise RuntimeError("boom")
            return []

        orch.crawl_url = fake_crawl
        urls = ["u0", "u1", "u2", "u3", "u4"]
        await orch.bulk_crawl(urls, ExtractionMethod.HTTP)

        starts = [u for kind, u in events if kind == "start"]
        assert starts == urls
        # a chunk only starts once the previous chunk has fully finished
        for chunk_start, prev_chunk in ((2, ["u0", "u1"]), (4, ["u2", "u3"])):
            start_index = events.index(("start", urls[chunk_start]))
            for url in prev_chunk:
                assert events.index(("end", url)) < start_index

    @pytest.mark.asyncio
    async def test_cancel_stops_in_flight_urls(self, tmp_path):
        orch = CrawlOrchestrator(crawler_config(tmp_path), monitoring=MonitoringSystem())
        finished = []

        async def slow_crawl(url, method):
            await asyncio.sleep(0.2)
            finished.append(url)
            return []

        orch.crawl_url = slow_crawl
        task = asyncio.create_task(orch.bulk_crawl(["a", "b"], ExtractionMethod.HTTP))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.sleep(0.3)
        assert finished == []

    @pytest.mark.asyncio
    async def test_progress_events(self, tmp_path):
        queue = asyncio.Queue()
        http = MagicMock()
        http.get_text = AsyncMock(side_effect=fake_get_text)
        orch = CrawlOrchestrator(
            crawler_config(tmp_path), http=http, monitoring=MonitoringSystem(), progress=queue
        )
        orch.add_filter_agent(EmailFilterAgent("emails"))
        orch.add_extraction_target(ExtractionTarget(data_type=DataType.EMAIL))
        await orch.initialize()
        try:
            await orch.bulk_crawl(["ok1", "bad", "ok2"], ExtractionMethod.HTTP)
        finally:
            await orch.close()

        events = [queue.get_nowait() for _ in range(queue.qsize())]
        assert all(isinstance(e, ProgressEvent) for e in events)
        assert sorted(e.completed for e in events) == [1, 2, 3]
        assert {e.url: e.results for e in events} == {"ok1": 1, "bad": 0, "ok2": 2}


class TestStatsAndLearning:

    @pytest.mark.asyncio
    async def test_stats_are_idempotent(self, orchestrator):
        await orchestrator.crawl_url("ok1", ExtractionMethod.HTTP)
        first = await orchestrator.get_comprehensive_stats()
        second = await orchestrator.get_comprehensive_stats()
        assert first == second
        assert first.filter_agents["emails"]["total_processed"] == 1
        assert first.storage["total_results"] == 1

    @pytest.mark.asyncio
    async def test_feedback_reaches_agents_and_scorer(self, tmp_path):
        orch = CrawlOrchestrator(
            crawler_config(tmp_path, enable_learning=True), monitoring=MonitoringSystem()
        )
        agent = EmailFilterAgent("emails")
        orch.add_filter_agent(agent)

        orch.add_user_feedback("spam@junk.biz", False, {"source_reliability": 0.5})
        assert "junk.biz" in agent.blocked_domains
        assert orch.scorer.get_stats()["training_samples"] == 1

    @pytest.mark.asyncio
    async def test_feedback_with_loose_context_values(self, tmp_path):
        orch = CrawlOrchestrator(
            crawler_config(tmp_path, enable_learning=True), monitoring=MonitoringSystem()
        )
        orch.add_filter_agent(EmailFilterAgent("emails"))

        orch.add_user_feedback("a@example.com", True, {"source_reliability": None, "extraction_depth": "2"})
        assert orch.scorer.get_stats()["training_samples"] == 1

    @pytest.mark.asyncio
    async def test_adapt_strategies_records_snapshot(self, orchestrator):
        await orchestrator.crawl_url("ok2", ExtractionMethod.HTTP)
        strategies = await orchestrator.adapt_strategies()
        assert strategies == {"emails": "stealth"}
        rows = await orchestrator.storage.get_learning_stats()
        assert rows[0]["agent_name"] == "emails"


class TestBrowserPath:

    @pytest.mark.asyncio
    async def test_stealth_before_navigation(self, tmp_path):
        calls = []
        page = MagicMock()
        page.goto = AsyncMock(side_effect=lambda *a, **kw: calls.append("goto"))
        page.content = AsyncMock(return_value=page_with("dan@example.com"))
        page.close = AsyncMock(side_effect=lambda: calls.append("close"))

        browser = MagicMock()
        browser.new_page = AsyncMock(return_value=page)
        stealth = MagicMock()
        stealth.prepare_page = AsyncMock(side_effect=lambda p: calls.append("prepare"))
        stealth.simulate_human = AsyncMock(side_effect=lambda p: calls.append("human"))

        orch = CrawlOrchestrator(
            crawler_config(tmp_path),
            browser=browser,
            stealth=stealth,
            http=MagicMock(),
            monitoring=MonitoringSystem(),
        )
        orch.add_filter_agent(EmailFilterAgent("emails"))
        orch.add_extraction_target(ExtractionTarget(data_type=DataType.EMAIL))
        await orch.initialize()
        try:
            results = await orch.crawl_url("https://example.com", ExtractionMethod.BROWSER)
        finally:
            await orch.close()

        assert calls == ["prepare", "goto", "human", "close"]
        assert [r.data for r in results] == ["dan@example.com"]
        assert page.goto.await_args.kwargs["wait_until"] == "networkidle"

    @pytest.mark.asyncio
    async def test_failed_browser_launch_is_stopped(self, tmp_path, monkeypatch):
        client = MagicMock()
        client.start = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))
        client.stop = AsyncMock()
        monkeypatch.setattr(PlaywrightClient, "from_config", lambda cfg: client)

        cfg = crawler_config(tmp_path, browser=BrowserConfig(enabled=True, settle_delay=(0.0, 0.0)))
        orch = CrawlOrchestrator(cfg, http=MagicMock(), monitoring=MonitoringSystem())
        await orch.initialize()
        try:
            assert orch.browser is None
            client.stop.assert_awaited_once()
        finally:
            await orch.close()
