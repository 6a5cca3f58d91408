"""
Main entry point for the adaptive crawler with scheduling support.
"""

import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional, Tuple

from dotenv import load_dotenv

# Add project root to PYTHONPATH so imports work when running this script directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from adaptive_crawler.agent_loader import build_agent, list_available, refresh_registry
from adaptive_crawler.config import AppConfig, CrawlerConfig, CrawlJob, load_config
from adaptive_crawler.extraction import build_target
from adaptive_crawler.infra.browser import PlaywrightClient
from adaptive_crawler.infra.http import HttpClient
from adaptive_crawler.infra.scheduler import Scheduler
from adaptive_crawler.models import ProgressEvent
from adaptive_crawler.orchestrator import CrawlOrchestrator
from adaptive_crawler.storage import StorageEngine


logger = logging.getLogger(__name__)


async def open_transports(
    crawler_cfg: CrawlerConfig,
) -> Tuple[HttpClient, Optional[PlaywrightClient]]:
    """Start the HTTP session and browser shared by every job in the process."""
    http = HttpClient.from_config(crawler_cfg.http)
    browser = None
    if crawler_cfg.browser.enabled:
        client = PlaywrightClient.from_config(crawler_cfg.browser)
        try:
            await client.start()
            browser = client
        except Exception as e:
            logger.error(f"Browser initialization failed, falling back to HTTP: {e}")
            await client.stop()
    return http, browser


def build_orchestrator(
    app_cfg: AppConfig,
    job: CrawlJob,
    storage: StorageEngine,
    progress: asyncio.Queue,
    http: HttpClient,
    browser: Optional[PlaywrightClient] = None,
) -> CrawlOrchestrator:
    """Wire one job's agents and targets into an orchestrator over the shared resources."""
    crawler_cfg = app_cfg.crawler
    if browser is None:
        crawler_cfg = crawler_cfg.model_copy(
            update={"browser": crawler_cfg.browser.model_copy(update={"enabled": False})}
        )
    orchestrator = CrawlOrchestrator(
        crawler_cfg, storage=storage, progress=progress, http=http, browser=browser
    )
    for agent_cfg in job.agents:
        orchestrator.add_filter_agent(build_agent(agent_cfg))
    for target_cfg in job.targets:
        orchestrator.add_extraction_target(build_target(target_cfg))
    return orchestrator


async def run_job(job: CrawlJob, orchestrator: CrawlOrchestrator) -> None:
    logger.info(f"Running job '{job.name}' over {len(job.urls)} URL(s)")
    try:
        results = await orchestrator.bulk_crawl(job.urls, job.method)
        strategies = await orchestrator.adapt_strategies()
        logger.info(f"Job '{job.name}' finished: {len(results)} results, strategies {strategies}")
    except Exception as e:
        logger.error(f"Job '{job.name}' failed: {e}", exc_info=True)


async def log_progress(queue: asyncio.Queue) -> None:
    while True:
        event: ProgressEvent = await queue.get()
        if event.error:
            logger.warning(f"[{event.completed}/{event.total}] {event.url} failed: {event.error}")
        else:
            logger.info(f"[{event.completed}/{event.total}] {event.url}: {event.results} result(s)")
        queue.task_done()


def schedule_job(scheduler: Scheduler, job: CrawlJob, orchestrator: CrawlOrchestrator) -> None:
    if job.schedule.cron:
        scheduler.add_cron_job(run_job, job.schedule.cron, job_id=job.name, args=(job, orchestrator))
    else:
        scheduler.add_interval_job(
            run_job, job_id=job.name, args=(job, orchestrator), **job.schedule.interval
        )


async def main():
    """Load configuration, build one orchestrator per job and run them."""
    load_dotenv()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )

    logger.info("Discovering filter agents...")
    refresh_registry()
    available = sorted(k for k in list_available() if "." not in k)
    logger.info(f"Discovered {len(available)} agent classes: {', '.join(available)}")

    config_file = os.getenv("CRAWLER_CONFIG", "config.yaml")
    app_cfg = load_config(config_file)
    if not app_cfg.jobs:
        logger.error(f"No jobs configured in {config_file}. Exiting.")
        return

    storage = StorageEngine(app_cfg.crawler.storage.db_path)
    await storage.connect()
    http, browser = await open_transports(app_cfg.crawler)

    progress: asyncio.Queue = asyncio.Queue(maxsize=100)
    progress_task = asyncio.create_task(log_progress(progress))

    orchestrators: List[CrawlOrchestrator] = []
    scheduler = None
    one_shot: List[asyncio.Task] = []
    stop_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        asyncio.get_running_loop().add_signal_handler(sig, signal_handler)

    try:
        pairs = []
        for job in app_cfg.jobs:
            orchestrator = build_orchestrator(app_cfg, job, storage, progress, http, browser)
            await orchestrator.initialize()
            orchestrators.append(orchestrator)
            pairs.append((job, orchestrator))

        if os.getenv("SCHEDULER_MODE", "enabled") == "disabled":
            logger.info("Running all jobs once (scheduler disabled)...")
            run_task = asyncio.ensure_future(
                asyncio.gather(*(run_job(job, orch) for job, orch in pairs))
            )
            stop_task = asyncio.create_task(stop_event.wait())
            await asyncio.wait([run_task, stop_task], return_when=asyncio.FIRST_COMPLETED)
            for task in (run_task, stop_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(run_task, stop_task, return_exceptions=True)
            return

        scheduler = Scheduler(timezone=os.getenv("SCHEDULER_TIMEZONE", "UTC"))
        for job, orchestrator in pairs:
            if job.schedule is None:
                logger.info(f"Job '{job.name}' has no schedule, running once now")
                one_shot.append(asyncio.create_task(run_job(job, orchestrator)))
            else:
                schedule_job(scheduler, job, orchestrator)
        await scheduler.start()

        await stop_event.wait()

    except Exception as e:
        logger.error(f"Error in main loop: {e}", exc_info=True)
    finally:
        logger.info("Shutting down...")
        if scheduler is not None:
            await scheduler.stop()
        for task in one_shot:
            if not task.done():
                task.cancel()
        await asyncio.gather(*one_shot, return_exceptions=True)
        for orchestrator in orchestrators:
            await orchestrator.close()
        progress_task.cancel()
        try:
            await progress_task
        except asyncio.CancelledError:
            pass
        if browser is not None:
            await browser.stop()
        await http.close()
        await storage.close()
        logger.info("Shutdown complete")


def run_crawler_system():
    """Entry point that can be called from other scripts."""
    asyncio.run(main())


if __name__ == "__main__":
    run_crawler_system()
