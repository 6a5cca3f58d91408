"""
browser.py - Async Playwright session shared by every browser fetch.

One browser + one context live for the whole process; every fetch opens its
own page via :meth:`PlaywrightClient.new_page` and must close it itself.
Fingerprint patches and human-like interaction live in
:mod:`adaptive_crawler.stealth`.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Dict, List, Optional, Type

try:
    from playwright.async_api import (
        async_playwright,
        Browser,
        BrowserContext,
        BrowserType,
        Page,
    )
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Package 'playwright' is required.  Install with:  pip install playwright"
    ) from e

from ..config import BrowserConfig
from .http import random_user_agent

logger = logging.getLogger(__name__)

DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-features=VizDisplayCompositor",
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--disable-extensions",
    "--disable-blink-features=AutomationControlled",
]


class PlaywrightClient:
    """
    Thin wrapper around Playwright.

    Examples
    --------
    async with PlaywrightClient() as pw:
        page = await pw.new_page()
        try:
            await page.goto("https://example.com")
            html = await page.content()
        finally:
            await page.close()
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        browser_type: str = "chromium",
        timeout: float = 30_000,
        user_agent: Optional[str] = None,
        additional_args: Optional[List[str]] = None,
        extra_context_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.headless = headless
        self.browser_type = browser_type.lower()
        self.timeout = timeout
        self.user_agent = user_agent
        self._launch_args = DEFAULT_LAUNCH_ARGS + list(additional_args or [])
        self._context_kwargs = extra_context_kwargs or {}

        # Internal Playwright handles
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    @classmethod
    def from_config(cls, cfg: BrowserConfig) -> "PlaywrightClient":
        return cls(
            headless=cfg.headless,
            browser_type=cfg.browser_type,
            timeout=cfg.timeout,
            additional_args=cfg.additional_args,
        )

    # --------------------------------------------------------------------- #
    # Async context-manager sugar
    async def __aenter__(self) -> "PlaywrightClient":  # noqa: D401
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.stop()

    # --------------------------------------------------------------------- #
    # Lifecycle helpers
    async def start(self) -> None:
        """Launch browser & default context if not already started."""
        if self._browser:
            return

        self._playwright = await async_playwright().start()
        browser_launcher: BrowserType

        if self.browser_type == "chromium":
            browser_launcher = self._playwright.chromium
        elif self.browser_type == "firefox":
            browser_launcher = self._playwright.firefox
        elif self.browser_type == "webkit":
            browser_launcher = self._playwright.webkit
        else:  # pragma: no cover
            raise ValueError(f"Unsupported browser type: {self.browser_type}")

        launch_kwargs: Dict[str, Any] = {"headless": self.headless}
        if self.browser_type == "chromium":
            launch_kwargs["args"] = self._launch_args
        self._browser = await browser_launcher.launch(**launch_kwargs)

        context_kwargs: Dict[str, Any] = {
            "ignore_https_errors": True,
            "user_agent": self.user_agent or random_user_agent(),
            "java_script_enabled": True,
            **self._context_kwargs,
        }
        self._context = await self._browser.new_context(**context_kwargs)

        logger.info(
            "Playwright started: %s (headless=%s)", self.browser_type, self.headless
        )

    async def stop(self) -> None:
        """Gracefully close context, browser & Playwright."""
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Playwright stopped")

    # --------------------------------------------------------------------- #
    async def new_page(self) -> Page:
        """Return a fresh Page with the default timeout applied."""
        if not self._context:
            await self.start()
        page = await self._context.new_page()
        page.set_default_timeout(self.timeout)
        return page
