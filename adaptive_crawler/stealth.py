"""
Fingerprint masking and human-like interaction for Playwright pages.

:meth:`StealthController.prepare_page` must run on a fresh page *before*
``page.goto`` so the init scripts apply to the document being loaded;
:meth:`StealthController.simulate_human` runs after navigation. Both are
best-effort: a failing script or gesture is logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, List, Optional, Tuple

from playwright.async_api import Page

logger = logging.getLogger(__name__)

Point = Tuple[int, int]

STEALTH_SCRIPTS: Dict[str, str] = {
    "webdriver": """
        Object.defineProperty(navigator, 'webdriver', {
          get: () => undefined,
        });
    """,
    "plugins": """
        Object.defineProperty(navigator, 'plugins', {
          get: () => [
            {
              0: {type: "application/x-google-chrome-pdf", suffixes: "pdf", description: "Portable Document Format"},
              description: "Portable Document Format",
              filename: "internal-pdf-viewer",
              length: 1,
              name: "Chrome PDF Plugin"
            },
            {
              0: {type: "application/pdf", suffixes: "pdf", description: "Portable Document Format"},
              description: "Portable Document Format",
              filename: "mhjfbmdgcfjbbpaeojofohoefgiehjai",
              length: 1,
              name: "Chrome PDF Viewer"
            }
          ],
        });
    """,
    "timezone": """
        const _DateTimeFormat = Intl.DateTimeFormat;
        Intl.DateTimeFormat = function(...args) {
          const instance = new _DateTimeFormat(...args);
          const resolved = instance.resolvedOptions;
          instance.resolvedOptions = function() {
            const options = resolved.call(this);
            options.timeZone = 'America/New_York';
            return options;
          };
          return instance;
        };
    """,
    "webgl": """
        const _getParameter = WebGLRenderingContext.prototype.getParameter;
        WebGLRenderingContext.prototype.getParameter = function(parameter) {
          if (parameter === 37445) return 'Intel Inc.';
          if (parameter === 37446) return 'Intel Iris OpenGL Engine';
          return _getParameter.call(this, parameter);
        };
    """,
    "permissions": """
        const _query = window.navigator.permissions.query;
        window.navigator.permissions.query = (parameters) => (
          parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : _query(parameters)
        );
    """,
    "hardware_concurrency": """
        Object.defineProperty(navigator, 'hardwareConcurrency', {
          get: () => 4
        });
    """,
    "language": """
        Object.defineProperty(navigator, 'language', {
          get: () => 'en-US'
        });
        Object.defineProperty(navigator, 'languages', {
          get: () => ['en-US', 'en']
        });
    """,
    "audio": """
        const _getChannelData = AudioBuffer.prototype.getChannelData;
        AudioBuffer.prototype.getChannelData = function() {
          const result = _getChannelData.apply(this, arguments);
          for (let i = 0; i < result.length; i++) {
            result[i] += (Math.random() * 0.0001) - 0.00005;
          }
          return result;
        };
    """,
    "battery": """
        Object.defineProperty(navigator, 'getBattery', {
          get: () => () => Promise.resolve({
            level: 0.85,
            charging: true,
            chargingTime: 0,
            dischargingTime: Infinity,
            addEventListener: () => {},
            removeEventListener: () => {},
            dispatchEvent: () => true
          })
        });
    """,
    "chrome_runtime": """
        window.chrome = {
          runtime: {}
        };
    """,
}


def generate_bezier_curve(
    start: Point,
    end: Point,
    num_points: int = 20,
    rng: Optional[random.Random] = None,
) -> List[Point]:
    """Cubic Bezier path from *start* to *end* with random control points
    inside their bounding box; returns ``num_points + 1`` points."""
    rng = rng or random.Random()
    lo_x, hi_x = sorted((start[0], end[0]))
    lo_y, hi_y = sorted((start[1], end[1]))
    c1 = (rng.randint(lo_x, hi_x), rng.randint(lo_y, hi_y))
    c2 = (rng.randint(lo_x, hi_x), rng.randint(lo_y, hi_y))

    points: List[Point] = []
    for i in range(num_points + 1):
        t = i / num_points
        u = 1 - t
        x = u ** 3 * start[0] + 3 * u ** 2 * t * c1[0] + 3 * u * t ** 2 * c2[0] + t ** 3 * end[0]
        y = u ** 3 * start[1] + 3 * u ** 2 * t * c1[1] + 3 * u * t ** 2 * c2[1] + t ** 3 * end[1]
        points.append((int(x), int(y)))
    return points


class StealthController:
    """Applies the fingerprint script battery and simulated user gestures."""

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        curve_points: int = 20,
        step_delay: Tuple[float, float] = (0.01, 0.05),
        scroll_range: Tuple[int, int] = (100, 500),
        scroll_pause: Tuple[float, float] = (0.5, 2.0),
        final_pause: Tuple[float, float] = (2.0, 5.0),
        scripts: Optional[Dict[str, str]] = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.curve_points = curve_points
        self.step_delay = step_delay
        self.scroll_range = scroll_range
        self.scroll_pause = scroll_pause
        self.final_pause = final_pause
        self.scripts = dict(STEALTH_SCRIPTS if scripts is None else scripts)
        self.pages_prepared = 0
        self.script_failures = 0
        logger.info("Stealth controller initialized")

    async def _sleep(self, bounds: Tuple[float, float]) -> None:
        await asyncio.sleep(self.rng.uniform(*bounds))

    # ------------------------------------------------------------------ #
    async def prepare_page(self, page: Page) -> int:
        """Register every init script on *page*; returns how many succeeded."""
        applied = 0
        for name, script in self.scripts.items():
            try:
                await page.add_init_script(script)
                applied += 1
            except Exception as e:
                self.script_failures += 1
                logger.warning(f"Stealth script '{name}' failed: {e}")
        self.pages_prepared += 1
        return applied

    async def simulate_human(self, page: Page) -> None:
        """Mouse path, scroll, then a reading pause."""
        await self.move_mouse(page)
        await self.scroll(page)
        await self._sleep(self.final_pause)

    async def move_mouse(self, page: Page) -> None:
        try:
            viewport = await page.evaluate(
                "() => ({width: window.innerWidth, height: window.innerHeight})"
            )
            width, height = int(viewport["width"]), int(viewport["height"])
            start = (
                self.rng.randint(0, max(0, width // 4)),
                self.rng.randint(0, max(0, height // 4)),
            )
            end = (
                self.rng.randint(0, max(0, width // 4)) + 3 * width // 4,
                self.rng.randint(0, max(0, height // 4)) + 3 * height // 4,
            )
            for x, y in generate_bezier_curve(start, end, self.curve_points, self.rng):
                await page.mouse.move(x, y)
                await self._sleep(self.step_delay)
        except Exception as e:
            logger.warning(f"Mouse movement simulation failed: {e}")

    async def scroll(self, page: Page) -> None:
        try:
            amount = self.rng.randint(*self.scroll_range)
            direction = 1 if self.rng.random() > 0.5 else -1
            await page.evaluate("(amount) => window.scrollBy(0, amount)", amount * direction)
            await self._sleep(self.scroll_pause)
        except Exception as e:
            logger.warning(f"Scroll simulation failed: {e}")

    def get_stats(self) -> Dict[str, int]:
        return {
            "pages_prepared": self.pages_prepared,
            "script_failures": self.script_failures,
            "scripts": len(self.scripts),
        }
