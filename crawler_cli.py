#!/usr/bin/env python3
"""
Crawler management CLI - ad-hoc crawls and inspection of stored results.

Usage: python crawler_cli.py <command> [options]

Commands:
    crawl <url> [url ...]   - Crawl URLs over HTTP with the first configured job's agents/targets
    results [limit]         - Show the most recent stored results (default: 20)
    search <query> [limit]  - Substring search over stored results (default: 20)
    stats                   - Show storage statistics and recent learning snapshots
    alerts                  - Show the latest saved performance report and its recommendations
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from adaptive_crawler.agent_loader import build_agent
from adaptive_crawler.config import load_config
from adaptive_crawler.extraction import build_target
from adaptive_crawler.models import AlertLevel, DataType, ExtractionMethod, ExtractionTarget, PerformanceReport
from adaptive_crawler.orchestrator import CrawlOrchestrator
from adaptive_crawler.storage import StorageEngine


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


_LEVEL_COLORS = {
    AlertLevel.INFO: Colors.BLUE,
    AlertLevel.WARNING: Colors.YELLOW,
    AlertLevel.ERROR: Colors.RED,
}


def _truncate(text: str, width: int = 80) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def print_results(rows) -> None:
    if not rows:
        print(f"{Colors.YELLOW}No results{Colors.END}")
        return
    for row in rows:
        print(
            f"{Colors.CYAN}{row.confidence:.2f}{Colors.END} "
            f"{Colors.BOLD}{row.data_type:<9}{Colors.END} "
            f"{_truncate(row.data)}  {Colors.BLUE}{row.url}{Colors.END}"
        )


def print_alerts(alerts) -> None:
    if not alerts:
        print(f"{Colors.GREEN}No alerts{Colors.END}")
        return
    for alert in alerts:
        color = _LEVEL_COLORS.get(alert.level, "")
        print(f"{color}[{alert.level.value}]{Colors.END} {alert.timestamp:%Y-%m-%d %H:%M:%S} {alert.message}")


async def crawl(urls) -> None:
    app_cfg = load_config(os.getenv("CRAWLER_CONFIG", "config.yaml"))
    crawler_cfg = app_cfg.crawler.model_copy(update={"jitter_range": (0.0, 0.0)}, deep=True)
    crawler_cfg.browser.enabled = False

    async with CrawlOrchestrator(crawler_cfg) as orchestrator:
        if app_cfg.jobs:
            job = app_cfg.jobs[0]
            for agent_cfg in job.agents:
                orchestrator.add_filter_agent(build_agent(agent_cfg))
            for target_cfg in job.targets:
                orchestrator.add_extraction_target(build_target(target_cfg))
        if not orchestrator.extraction_targets:
            orchestrator.add_extraction_target(ExtractionTarget(data_type=DataType.EMAIL))

        results = await orchestrator.bulk_crawl(list(urls), ExtractionMethod.HTTP)
        print(f"{Colors.BOLD}Extracted {len(results)} item(s){Colors.END}")
        for result in results:
            print(f"  {Colors.CYAN}{result.confidence:.2f}{Colors.END} {_truncate(str(result.data))}")
        print()
        print_alerts(orchestrator.monitoring.get_alerts())


async def show_results(limit: int) -> None:
    storage = await _open_storage()
    try:
        print_results(await storage.get_results(limit))
    finally:
        await storage.close()


async def search(query: str, limit: int) -> None:
    storage = await _open_storage()
    try:
        print_results(await storage.search_results(query, limit))
    finally:
        await storage.close()


async def show_stats() -> None:
    storage = await _open_storage()
    try:
        stats = await storage.get_stats()
        print(f"{Colors.BOLD}Storage{Colors.END}")
        print("=" * 50)
        for key, value in stats.items():
            print(f"  {key}: {value}")
        print()
        print(f"{Colors.BOLD}Recent learning snapshots{Colors.END}")
        for row in await storage.get_learning_stats(10):
            print(
                f"  {row['timestamp']} {row['agent_name']}: "
                f"success_rate={row['success_rate'] or 0.0:.2f} strategy={row['strategy']}"
            )
    finally:
        await storage.close()


def show_latest_report() -> None:
    app_cfg = load_config(os.getenv("CRAWLER_CONFIG", "config.yaml"))
    reports = sorted(Path(app_cfg.crawler.monitoring.reports_dir).glob("performance_report_*.json"))
    if not reports:
        print(f"{Colors.GREEN}No performance reports yet{Colors.END}")
        return

    report = PerformanceReport.model_validate_json(reports[-1].read_text(encoding="utf-8"))
    summary = report.summary
    print(f"{Colors.BOLD}Performance report {report.timestamp:%Y-%m-%d %H:%M:%S}{Colors.END}")
    print("=" * 50)
    print(f"  Pages: {summary.total_pages}  Items: {summary.total_data}")
    print(f"  Avg success rate: {summary.avg_success_rate:.1%}")
    health_color = Colors.GREEN if summary.system_health >= 0.7 else Colors.YELLOW
    print(f"  System health: {health_color}{summary.system_health:.2f}{Colors.END}")
    print()
    if not report.recommendations:
        print(f"{Colors.GREEN}No recommendations{Colors.END}")
    for rec in report.recommendations:
        print(f"{Colors.YELLOW}- {rec}{Colors.END}")


async def _open_storage() -> StorageEngine:
    app_cfg = load_config(os.getenv("CRAWLER_CONFIG", "config.yaml"))
    storage = StorageEngine(app_cfg.crawler.storage.db_path)
    await storage.connect()
    return storage


async def main(argv) -> int:
    command = argv[0].lower()
    args = argv[1:]

    try:
        if command == "crawl":
            if not args:
                print(f"{Colors.RED}crawl needs at least one URL{Colors.END}")
                return 1
            await crawl(args)
        elif command == "results":
            await show_results(int(args[0]) if args else 20)
        elif command == "search":
            if not args:
                print(f"{Colors.RED}search needs a query{Colors.END}")
                return 1
            await search(args[0], int(args[1]) if len(args) > 1 else 20)
        elif command == "stats":
            await show_stats()
        elif command == "alerts":
            show_latest_report()
        else:
            print(f"{Colors.RED}Unknown command: {command}{Colors.END}")
            print(__doc__)
            return 1
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Interrupted{Colors.END}")
    except Exception as e:
        print(f"{Colors.RED}Error: {e}{Colors.END}")
        return 1
    return 0


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )

    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    sys.exit(asyncio.run(main(sys.argv[1:])))
